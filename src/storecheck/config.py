"""Configuration utilities for storecheck.

This module centralizes small helpers and constants related to configuration.
Settings come from the environment so that CI jobs can point the suites at
real backends without code changes.
"""

import os

DB_URL_ENV = "STORECHECK_DB_URL"  # pragma: no mutate
RETRY_ATTEMPTS_ENV = "STORECHECK_RETRY_ATTEMPTS"  # pragma: no mutate
LOG_LEVEL_ENV = "STORECHECK_LOG_LEVEL"  # pragma: no mutate
LOG_PATH_ENV = "STORECHECK_LOG_PATH"  # pragma: no mutate

DEFAULT_RETRY_ATTEMPTS = 3


class DatabaseUrlNotSetError(Exception):
    """Raised when the STORECHECK_DB_URL environment variable is not set."""


class InvalidSettingError(Exception):
    """Raised when an environment setting holds an unusable value."""

    def __init__(self, name: str, value: str, reason: str) -> None:
        super().__init__(f"{name}={value!r}: {reason}")
        self.name = name
        self.value = value


def get_db_url() -> str:
    """Get the database URL used by SQL-backed conformance suites.

    Returns:
        The value of the `STORECHECK_DB_URL` environment variable.

    Raises:
        DatabaseUrlNotSetError: If `STORECHECK_DB_URL` is not set.
    """
    if not (url := os.environ.get(DB_URL_ENV)):
        raise DatabaseUrlNotSetError
    return url


def get_retry_attempts() -> int:
    """Get the number of attempts for retried scenarios.

    Returns:
        The value of `STORECHECK_RETRY_ATTEMPTS`, or `DEFAULT_RETRY_ATTEMPTS`
        when unset.

    Raises:
        InvalidSettingError: If the value is not a positive integer.
    """
    if not (raw := os.environ.get(RETRY_ATTEMPTS_ENV, "").strip()):
        return DEFAULT_RETRY_ATTEMPTS
    try:
        attempts = int(raw)
    except ValueError as e:
        raise InvalidSettingError(RETRY_ATTEMPTS_ENV, raw, "not an integer") from e
    if attempts < 1:
        raise InvalidSettingError(RETRY_ATTEMPTS_ENV, raw, "must be at least 1")
    return attempts
