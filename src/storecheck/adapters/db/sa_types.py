"""Custom SQLAlchemy types for the storage tables.

Exports
-------
- PORTABLE_BLOB: binary payload column (``BLOB`` on SQLite, ``BYTEA`` on
  PostgreSQL).
- EpochSeconds: aware UTC ``datetime`` on the Python side, whole seconds since
  the Unix epoch in the database.

Storing integers keeps timestamps identical across backends: there is no
time-zone handling to get wrong and no sub-second precision for one backend to
keep and another to drop. Adapters report timestamps in whole seconds anyway.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import BigInteger, LargeBinary
from sqlalchemy.dialects.postgresql import BYTEA
from sqlalchemy.types import TypeDecorator

if TYPE_CHECKING:
    from sqlalchemy.engine.interfaces import Dialect

__all__ = ["PORTABLE_BLOB", "EpochSeconds"]


PORTABLE_BLOB = LargeBinary().with_variant(BYTEA(), "postgresql")


class EpochSeconds(TypeDecorator[datetime]):  # pylint: disable=too-many-ancestors
    """UTC datetime persisted as integer seconds since the epoch.

    Naive datetimes are treated as UTC. Fractions of a second are truncated on
    the way in, so a value read back may be earlier than the one written by
    less than a second.
    """

    impl = BigInteger()
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> Any:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())

    def process_result_value(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return datetime.fromtimestamp(int(value), tz=timezone.utc)

    def process_literal_param(self, value: datetime | None, dialect: Dialect) -> Any:
        return self.process_bind_param(value, dialect)

    @property
    def python_type(self) -> type[datetime]:
        return datetime
