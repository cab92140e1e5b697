"""pytest plugin for storecheck conformance runs.

Enable it from a ``conftest.py``:

    pytest_plugins = ["storecheck.conformance.plugin"]

The plugin registers the markers used by storecheck test suites and adds two
options that route the ``storecheck`` loggers to a Rich console handler and,
optionally, to a flight-recorder file:

    --storecheck-log-level LEVEL   (env: STORECHECK_LOG_LEVEL)
    --storecheck-log-path PATH     (env: STORECHECK_LOG_PATH)

Handlers are attached to the ``storecheck`` logger only, leaving pytest's own
log capture of the root logger untouched.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from storecheck import __version__
from storecheck.config import LOG_LEVEL_ENV, LOG_PATH_ENV
from storecheck.logging import HarnessLogging, log_session_start

logger = logging.getLogger(__name__)

MARKERS = {
    "unit": "fast, isolated tests of a single module",
    "contract": "backend-agnostic behavior every adapter must satisfy",
    "integration": "tests touching a real filesystem or database",
    "functional": "end-to-end runs of the conformance suite via pytester",
    "property": "hypothesis property-based tests",
    "slow": "tests that take noticeably longer than the rest",
}

_HARNESS_KEY = pytest.StashKey[HarnessLogging]()


def parse_log_level(value: str) -> int:
    """Convert a level name (``"debug"``) or number (``"10"``) to an int.

    Raises:
        pytest.UsageError: If the value names no known level.
    """
    value = value.strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise pytest.UsageError(f"unknown log level: {value!r}")
    return level


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("storecheck", "storage adapter conformance")
    group.addoption(
        "--storecheck-log-level",
        dest="storecheck_log_level",
        default=os.environ.get(LOG_LEVEL_ENV),
        metavar="LEVEL",
        help=f"Show storecheck log records at LEVEL and above (env: {LOG_LEVEL_ENV}).",
    )
    group.addoption(
        "--storecheck-log-path",
        dest="storecheck_log_path",
        default=os.environ.get(LOG_PATH_ENV),
        metavar="PATH",
        help=(
            "Buffer storecheck log records and write them to PATH when a warning "
            f"or error occurs (env: {LOG_PATH_ENV})."
        ),
    )


def pytest_configure(config: pytest.Config) -> None:
    for name, description in MARKERS.items():
        config.addinivalue_line("markers", f"{name}: {description}")

    raw_level = config.getoption("storecheck_log_level")
    raw_path = config.getoption("storecheck_log_path")
    if not raw_level and not raw_path:
        return

    level = parse_log_level(raw_level) if raw_level else logging.WARNING
    log_path = Path(raw_path) if raw_path else None

    harness = HarnessLogging(level, log_path).install()
    config.stash[_HARNESS_KEY] = harness
    log_session_start(logger, version=__version__, harness=harness)


def pytest_unconfigure(config: pytest.Config) -> None:
    if (harness := config.stash.get(_HARNESS_KEY, None)) is not None:
        harness.uninstall()
