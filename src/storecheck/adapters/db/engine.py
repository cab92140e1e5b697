"""Engine construction and dialect checks for the SQLAlchemy storage adapter.

Exports
-------
- DialectName: the database backends the storage adapter is tested against.
- UnsupportedDialect: raised for any other backend.
- make_engine(): build an Engine, tuning SQLite connections on connect.
- engine_from_env(): build an Engine from ``STORECHECK_DB_URL``.

SQLite tuning
-------------
Every new SQLite connection gets:

- ``busy_timeout=5000``: wait for a competing writer instead of failing with
  "database is locked".
- ``journal_mode=WAL``: readers do not block the writer (file databases only;
  in-memory databases ignore it).
- ``synchronous=NORMAL``: durable enough for test stores, much faster.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, make_url

from storecheck.config import get_db_url

if TYPE_CHECKING:
    from sqlite3 import Connection as SQLiteConnection

    from sqlalchemy.engine import Connection, Engine

__all__ = ["DialectName", "UnsupportedDialect", "engine_from_env", "make_engine"]

logger = logging.getLogger(__name__)

SQLITE_PRAGMAS = (
    "PRAGMA busy_timeout=5000;",
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
)


class UnsupportedDialect(Exception):
    """Raised when the storage adapter is pointed at an unsupported backend."""


class DialectName(str, Enum):
    """Backends the SQLAlchemy storage adapter supports."""

    POSTGRES = "postgresql"
    SQLITE = "sqlite"

    @classmethod
    def of(cls, bind: Engine | Connection | URL | str) -> DialectName:
        """Return the backend behind a URL, Engine or Connection.

        Driver suffixes are ignored: ``"postgresql+psycopg://..."`` is
        `POSTGRES`.

        Raises:
            UnsupportedDialect: If the backend is not supported or cannot be
                determined.
        """
        if isinstance(bind, (str, URL)):
            name = make_url(bind).get_backend_name()
        else:
            try:
                name = bind.dialect.name
            except AttributeError as e:
                raise UnsupportedDialect(
                    f"{type(bind).__name__} does not expose .dialect.name"
                ) from e
        try:
            return cls(name)
        except ValueError as e:
            raise UnsupportedDialect(f"Unsupported dialect: {name!r}") from e


def make_engine(url: str | URL, *, echo: bool = False) -> Engine:
    """Create an Engine for `url`, applying the SQLite PRAGMAs where relevant.

    Args:
        url: Database URL.
        echo: If True, log SQL statements.

    Returns:
        Engine: Configured SQLAlchemy Engine.

    Raises:
        UnsupportedDialect: If `url` names an unsupported backend.
    """
    dialect = DialectName.of(url)
    engine = create_engine(url, echo=echo)

    if dialect is DialectName.SQLITE:

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn: SQLiteConnection, conn_record):  # type: ignore #pylint: disable=W0613
            cur = dbapi_conn.cursor()
            for pragma in SQLITE_PRAGMAS:
                cur.execute(pragma)
            cur.close()

    logger.debug("created %s engine for %s", dialect.value, engine.url.render_as_string())
    return engine


def engine_from_env(*, echo: bool = False) -> Engine:
    """Create an Engine for the database named by ``STORECHECK_DB_URL``.

    Raises:
        DatabaseUrlNotSetError: If the variable is not set.
        UnsupportedDialect: If it names an unsupported backend.
    """
    return make_engine(get_db_url(), echo=echo)
