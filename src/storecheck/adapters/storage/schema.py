"""Storage entries schema.

Defines the ``storage_entries`` table used by `SqlAlchemyStorageAdapter`.
Each row is one file or directory, keyed by its normalized path.

Constraints (enforced here):

| Constraint                         | Purpose                              |
|------------------------------------|--------------------------------------|
| PRIMARY KEY(path)                  | one entry per path                   |
| CHECK(kind IN ('file', 'dir'))     | only known entry kinds               |
| CHECK(size >= 0)                   | sizes are non-negative               |
| CHECK(kind = 'dir' OR contents ...)| files always carry a payload         |

Constraint and index names follow the naming convention on `metadata`
(``pk_<table>``, ``ck_<table>_<name>``, ``ix_<table>_<cols>``), so they are
identical on SQLite and PostgreSQL.
"""

from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
)

from storecheck.adapters.db.sa_types import PORTABLE_BLOB, EpochSeconds

__all__ = ["metadata", "storage_entries"]

metadata = MetaData(
    naming_convention={
        "ix": "ix_%(table_name)s_%(column_0_N_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "pk": "pk_%(table_name)s",
    }
)

storage_entries = Table(
    "storage_entries",
    metadata,
    Column(
        "path",
        String(1024),
        primary_key=True,
        comment="Normalized, forward-slash-separated path of the entry.",
    ),
    Column(
        "parent",
        String(1024),
        nullable=False,
        comment="Normalized path of the containing directory ('' for the root).",
    ),
    Column(
        "kind",
        String(4),
        nullable=False,
        comment="Entry kind: 'file' or 'dir'.",
    ),
    Column(
        "contents",
        PORTABLE_BLOB,
        nullable=True,
        comment="File payload; NULL for directories.",
    ),
    Column(
        "size",
        Integer,
        nullable=True,
        comment="Payload size in bytes; NULL for directories.",
    ),
    Column(
        "updated_at",
        EpochSeconds(),
        nullable=False,
        comment="Last-modified time, seconds since the Unix epoch (UTC).",
    ),
    CheckConstraint("kind IN ('file', 'dir')", name="known_kind"),
    CheckConstraint("size IS NULL OR size >= 0", name="non_negative_size"),
    CheckConstraint(
        "kind = 'dir' OR contents IS NOT NULL", name="file_has_contents"
    ),
    Index(None, "parent"),
    comment="Files and directories stored by the SQLAlchemy storage adapter.",
)
