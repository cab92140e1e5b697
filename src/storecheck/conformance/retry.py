"""Bounded retry for flaky conformance scenarios.

Remote backends occasionally fail for reasons unrelated to the behavior under
test (eventual consistency, throttling). `retry_call` re-runs a scenario a
fixed number of times, without backoff, when it raises one of the configured
exception types. Anything else propagates immediately.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

__all__ = ["retry_call"]

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_call(
    fn: Callable[[], T],
    retry_on: tuple[type[BaseException], ...] = (),
    attempts: int = 1,
) -> T:
    """Call `fn`, retrying when it raises one of `retry_on`.

    Args:
        fn: Zero-argument callable to run.
        retry_on: Exception types that trigger another attempt. An empty
            tuple means `fn` runs exactly once.
        attempts: Total number of attempts, including the first.

    Returns:
        Whatever `fn` returns on its first successful attempt.

    Raises:
        ValueError: If `attempts` is less than 1.
        BaseException: The exception from the final attempt, or any exception
            not listed in `retry_on`.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as e:
            if attempt == attempts:
                raise
            logger.warning(
                "attempt %d/%d failed with %s: %s; retrying",
                attempt,
                attempts,
                type(e).__name__,
                e,
            )
    raise AssertionError("unreachable")  # pragma: no cover
