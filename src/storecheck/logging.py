"""Harness logging for conformance runs.

Everything storecheck logs goes through loggers below ``storecheck``. This
module builds the handlers that make those records visible during a pytest
session without touching pytest's own capture of the root logger.

Exports
-------
- SourcePrefixFilter: tags each record with a short ``[source]`` label.
- console_handler(): Rich handler on stderr.
- flight_recorder(): in-memory buffer dumped to a file when something goes
  wrong (or when the session ends).
- HarnessLogging: attaches the handlers to the ``storecheck`` logger and
  restores the previous state afterwards.
- log_session_start(): one-line summary plus DEBUG diagnostics.

Typical usage
-------------
    with HarnessLogging(level=logging.INFO, log_path=Path("storecheck.log")) as hl:
        log_session_start(logger, version=__version__, harness=hl)
        ...
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from importlib import metadata
from logging.handlers import MemoryHandler
from pathlib import Path
from types import TracebackType
from typing import Literal, TypeAlias

from rich.console import Console
from rich.logging import RichHandler
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from storecheck.config import DB_URL_ENV, RETRY_ATTEMPTS_ENV

__all__ = [
    "PROJECT_PREFIX",
    "HarnessLogging",
    "SourcePrefixFilter",
    "console_handler",
    "flight_recorder",
    "log_session_start",
]

PROJECT_PREFIX = "storecheck"

ColorSystem: TypeAlias = Literal["auto", "standard", "256", "truecolor", "windows"]

FLIGHT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s:%(lineno)d: %(message)s"


class SourcePrefixFilter(logging.Filter):  # pylint: disable=too-few-public-methods
    """Set `record.source` to a short label naming where a record came from.

    Harness records are labelled with their module (``storecheck.conformance.
    context`` becomes ``[context]``); third-party records with their top-level
    package (``sqlalchemy.engine.Engine`` becomes ``[sqlalchemy]``).
    """

    def filter(self, record: logging.LogRecord) -> bool:
        head, _, _ = record.name.partition(".")
        if head == PROJECT_PREFIX:
            record.source = f"[{record.name.rpartition('.')[2]}]"
        else:
            record.source = f"[{head}]"
        return True


def console_handler(
    level: int = logging.INFO, *, color: bool = True, verbose: bool = False
) -> RichHandler:
    """Return a Rich handler writing harness records to stderr.

    Args:
        level: Minimum level shown.
        color: Disable to get plain output (e.g. for CI logs).
        verbose: Show timestamps, logger names and source locations.
    """
    color_system: ColorSystem | None = "auto" if color else None
    handler = RichHandler(
        level=level,
        console=Console(color_system=color_system, stderr=True),
        rich_tracebacks=True,
        show_time=verbose,
        show_path=verbose,
        enable_link_path=verbose,
    )
    if verbose:
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(source)s %(message)s"))
        handler.addFilter(SourcePrefixFilter())
    return handler


def flight_recorder(
    path: Path,
    *,
    capacity: int = 2000,
    flush_level: int = logging.WARNING,
    flush_on_close: bool = True,
) -> MemoryHandler:
    """Return a buffering handler that writes to `path` when flushed.

    Records of every level are buffered. The buffer is written out when it
    holds `capacity` records, when a record at `flush_level` or above arrives,
    and (if `flush_on_close`) when the handler is closed.
    """
    target = logging.FileHandler(path, mode="w", encoding="utf-8")
    target.setLevel(logging.DEBUG)
    target.setFormatter(logging.Formatter(FLIGHT_FORMAT))
    return MemoryHandler(
        capacity=capacity,
        flushLevel=flush_level,
        target=target,
        flushOnClose=flush_on_close,
    )


class HarnessLogging:
    """Handlers attached to the ``storecheck`` logger for one session.

    `install()` adds a console handler (and a flight recorder when `log_path`
    is given) and lowers the ``storecheck`` logger to DEBUG so that each
    handler applies its own threshold. `uninstall()` removes and closes the
    handlers, flushing the flight recorder, and restores the logger's level.

    Args:
        level: Console threshold.
        log_path: Flight-recorder file, or None for console output only.
        color: Passed to `console_handler()`.
    """

    def __init__(
        self, level: int = logging.WARNING, log_path: Path | None = None, *, color: bool = True
    ) -> None:
        self.level = level
        self.log_path = log_path
        self.color = color
        self.handlers: list[logging.Handler] = []
        self._saved_level: int | None = None

    @property
    def installed(self) -> bool:
        return self._saved_level is not None

    def install(self) -> HarnessLogging:
        if self.installed:
            return self
        self.handlers = [console_handler(self.level, color=self.color)]
        if self.log_path is not None:
            self.handlers.append(flight_recorder(self.log_path))

        project_logger = logging.getLogger(PROJECT_PREFIX)
        self._saved_level = project_logger.level
        project_logger.setLevel(logging.DEBUG)
        for handler in self.handlers:
            project_logger.addHandler(handler)
        return self

    def uninstall(self) -> None:
        if self._saved_level is None:
            return
        project_logger = logging.getLogger(PROJECT_PREFIX)
        for handler in self.handlers:
            project_logger.removeHandler(handler)
            # MemoryHandler.close() flushes, then drops its target.
            target = handler.target if isinstance(handler, MemoryHandler) else None
            handler.close()
            if target is not None:
                target.close()
        project_logger.setLevel(self._saved_level)
        self.handlers = []
        self._saved_level = None

    def __enter__(self) -> HarnessLogging:
        return self.install()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.uninstall()


def _masked_db_url() -> str:
    raw = os.environ.get(DB_URL_ENV)
    if not raw:
        return "<unset>"
    try:
        return make_url(raw).render_as_string(hide_password=True)
    except ArgumentError:
        return "<unparseable>"


def log_session_start(logger: logging.Logger, *, version: str, harness: HarnessLogging) -> None:
    """Log what the harness is configured to do, then DEBUG diagnostics.

    The database URL is logged with its password masked.
    """
    logger.info(
        "storecheck %s: console=%s, flight-recorder=%s",
        version,
        logging.getLevelName(harness.level),
        harness.log_path or "off",
    )
    logger.debug("Python %s on %s %s", sys.version.split()[0], platform.system(), platform.release())
    logger.debug(
        "pytest %s, SQLAlchemy %s, Rich %s",
        metadata.version("pytest"),
        metadata.version("sqlalchemy"),
        metadata.version("rich"),
    )
    logger.debug("%s=%s", DB_URL_ENV, _masked_db_url())
    logger.debug("%s=%s", RETRY_ATTEMPTS_ENV, os.environ.get(RETRY_ATTEMPTS_ENV, "<default>"))
    logger.debug("handlers: %s", [type(h).__name__ for h in harness.handlers])
