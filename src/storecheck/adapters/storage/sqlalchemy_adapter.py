"""SQLAlchemy-backed storage adapter.

This module provides a `StorageAdapter` that keeps every file and directory as
one row of the ``storage_entries`` table (see `schema.py`), which makes it
usable against any database SQLAlchemy supports (SQLite and PostgreSQL are
exercised).

Key behaviors
-------------
- **One transaction per operation**: every call runs inside
  ``engine.begin()``; a failing call leaves no partial state behind.
- **Error mapping**: DB-API failures surface as `StorageUnavailableError`;
  integrity violations as `StorageError`. Other faults propagate unchanged.
- **Literal paths**: prefix queries use ``startswith(..., autoescape=True)`` so
  ``%`` and ``_`` in paths are never treated as ``LIKE`` wildcards.
- **No visibility**: relational rows carry no access-control concept, so the
  capability is declared unsupported through `NotSupportingVisibility`.

Usage:
    engine = make_engine("sqlite+pysqlite:///storage.db")
    adapter = SqlAlchemyStorageAdapter(engine)
    adapter.write("some/file.txt", b"contents")
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import BinaryIO

from sqlalchemy import ColumnElement, RowMapping, delete, insert, or_, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError

from storecheck.adapters.db.engine import DialectName
from storecheck.interfaces.errors import (
    PathConflictError,
    StorageError,
    StorageUnavailableError,
)
from storecheck.interfaces.storage import (
    EntryKind,
    FileContents,
    FileStream,
    Metadata,
    StorageAdapter,
    WriteOptions,
)

from . import paths
from .mime import HEAD_SIZE, detect_mimetype
from .schema import metadata, storage_entries
from .visibility import NotSupportingVisibility

__all__ = ["SqlAlchemyStorageAdapter"]

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024

_ENTRY_COLUMNS = (
    storage_entries.c.path,
    storage_entries.c.kind,
    storage_entries.c.size,
    storage_entries.c.updated_at,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SqlAlchemyStorageAdapter(NotSupportingVisibility, StorageAdapter):
    """SQLAlchemy-backed `StorageAdapter` without visibility support.

    Args:
        engine: Engine bound to the target database.
        create_schema: Create the ``storage_entries`` table if it is missing.
        clock: Callable returning the current aware UTC datetime.

    Raises:
        UnsupportedDialect: If the engine's dialect is not supported.
        StorageUnavailableError: If the database cannot be reached while
            creating the schema.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        create_schema: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._dialect = DialectName.of(engine)
        self._engine = engine
        self._clock = clock
        if create_schema:
            try:
                metadata.create_all(engine, tables=[storage_entries])
            except DBAPIError as e:
                raise StorageUnavailableError(str(e)) from e

    # --------------------------------------------------------------------- #
    # Writes
    # --------------------------------------------------------------------- #

    def write(
        self, path: str, contents: bytes, options: WriteOptions | None = None
    ) -> Metadata:
        path = paths.normalize_path(path)
        with self._transaction() as conn:
            self._ensure_file_slot(conn, path, "cannot overwrite a directory")
            self._ensure_parents(conn, path)
            meta = self._put_file(conn, path, bytes(contents))
        logger.debug("wrote %d bytes to %r", len(contents), path)
        return meta

    def write_stream(
        self, path: str, stream: BinaryIO, options: WriteOptions | None = None
    ) -> Metadata:
        data = b"".join(iter(lambda: stream.read(_CHUNK), b""))
        return self.write(path, data, options)

    def create_dir(self, path: str, options: WriteOptions | None = None) -> Metadata:
        path = paths.normalize_path(path)
        if path == paths.ROOT:
            return Metadata(kind=EntryKind.DIRECTORY, path=path)
        with self._transaction() as conn:
            row = self._fetch(conn, path)
            if row is not None:
                if row["kind"] == EntryKind.FILE.value:
                    raise PathConflictError(path, "a file already exists")
                return self._to_metadata(row)
            self._ensure_parents(conn, path)
            return self._insert_dir(conn, path)

    # --------------------------------------------------------------------- #
    # Reads
    # --------------------------------------------------------------------- #

    def has(self, path: str) -> bool:
        path = paths.normalize_path(path)
        if path == paths.ROOT:
            return True
        with self._transaction() as conn:
            return self._fetch(conn, path) is not None

    def read(self, path: str) -> FileContents | None:
        path = paths.normalize_path(path)
        stmt = select(storage_entries.c.contents).where(
            storage_entries.c.path == path,
            storage_entries.c.kind == EntryKind.FILE.value,
        )
        with self._transaction() as conn:
            data = conn.execute(stmt).scalar_one_or_none()
        if data is None:
            return None
        return FileContents(path=path, contents=bytes(data))

    def read_stream(self, path: str) -> FileStream | None:
        if (contents := self.read(path)) is None:
            return None
        return FileStream(path=contents.path, stream=io.BytesIO(contents.contents))

    def list_contents(self, directory: str = "", recursive: bool = False) -> list[Metadata]:
        directory = paths.normalize_path(directory)
        stmt = select(*_ENTRY_COLUMNS).order_by(storage_entries.c.path.asc())
        if recursive:
            stmt = stmt.where(storage_entries.c.kind == EntryKind.FILE.value)
            if directory != paths.ROOT:
                stmt = stmt.where(
                    storage_entries.c.path.startswith(
                        directory + paths.SEPARATOR, autoescape=True
                    )
                )
        else:
            stmt = stmt.where(storage_entries.c.parent == directory)

        with self._transaction() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [self._to_metadata(row) for row in rows]

    def get_metadata(self, path: str) -> Metadata | None:
        path = paths.normalize_path(path)
        with self._transaction() as conn:
            row = self._fetch(conn, path)
        return None if row is None else self._to_metadata(row)

    def get_mimetype(self, path: str) -> Metadata | None:
        meta = self.get_metadata(path)
        if meta is None or not meta.is_file:
            return None
        if (contents := self.read(meta.path)) is None:
            return None
        if (mimetype := detect_mimetype(meta.path, contents.contents[:HEAD_SIZE])) is None:
            return None
        return meta.with_changes(mimetype=mimetype)

    # (inherits: get_visibility, set_visibility -> UnsupportedOperationError)

    # --------------------------------------------------------------------- #
    # Mutations
    # --------------------------------------------------------------------- #

    def delete(self, path: str) -> bool:
        path = paths.normalize_path(path)
        stmt = delete(storage_entries).where(
            storage_entries.c.path == path,
            storage_entries.c.kind == EntryKind.FILE.value,
        )
        with self._transaction() as conn:
            deleted = conn.execute(stmt).rowcount > 0
        if deleted:
            logger.debug("deleted %r", path)
        return deleted

    def delete_dir(self, path: str) -> bool:
        path = paths.normalize_path(path)
        with self._transaction() as conn:
            if path == paths.ROOT:
                conn.execute(delete(storage_entries))
            else:
                row = self._fetch(conn, path)
                if row is None or row["kind"] != EntryKind.DIRECTORY.value:
                    return False
                conn.execute(delete(storage_entries).where(self._subtree(path)))
        logger.debug("deleted directory %r", path)
        return True

    def copy(self, source: str, destination: str) -> bool:
        source = paths.normalize_path(source)
        destination = paths.normalize_path(destination)
        stmt = select(storage_entries.c.contents).where(
            storage_entries.c.path == source,
            storage_entries.c.kind == EntryKind.FILE.value,
        )
        with self._transaction() as conn:
            data = conn.execute(stmt).scalar_one_or_none()
            if data is None:
                return False
            self._ensure_file_slot(conn, destination, "cannot copy over a directory")
            self._ensure_parents(conn, destination)
            self._put_file(conn, destination, bytes(data))
        return True

    def rename(self, source: str, destination: str) -> bool:
        source = paths.normalize_path(source)
        destination = paths.normalize_path(destination)
        with self._transaction() as conn:
            row = self._fetch(conn, source)
            if row is None:
                return False
            if source == destination:
                return True
            if row["kind"] == EntryKind.FILE.value:
                if self._ensure_file_slot(conn, destination, "cannot move a file over a directory"):
                    conn.execute(
                        delete(storage_entries).where(storage_entries.c.path == destination)
                    )
            else:
                if paths.is_within(destination, source):
                    raise PathConflictError(destination, "cannot move a directory into itself")
                if destination == paths.ROOT or self._fetch(conn, destination) is not None:
                    raise PathConflictError(destination, "destination already exists")
            self._ensure_parents(conn, destination)
            moved = conn.execute(
                select(storage_entries.c.path).where(self._subtree(source))
            ).scalars().all()
            for old in moved:
                new = paths.rebase(old, source, destination)
                conn.execute(
                    update(storage_entries)
                    .where(storage_entries.c.path == old)
                    .values(path=new, parent=paths.parent_of(new))
                )
        logger.debug("renamed %r to %r", source, destination)
        return True

    # --------------------------------------------------------------------- #
    # Internals
    # --------------------------------------------------------------------- #

    @contextmanager
    def _transaction(self) -> Iterator[Connection]:
        """Run a block in one transaction, mapping database errors.

        Raises:
            StorageError: On integrity violations.
            StorageUnavailableError: On any other DB-API error.
        """
        try:
            with self._engine.begin() as conn:
                yield conn
        except IntegrityError as e:
            raise StorageError(str(e.orig or e)) from e
        except DBAPIError as e:  # OperationalError, InterfaceError, etc.
            raise StorageUnavailableError(str(e)) from e

    @staticmethod
    def _fetch(conn: Connection, path: str) -> RowMapping | None:
        stmt = select(*_ENTRY_COLUMNS).where(storage_entries.c.path == path)
        return conn.execute(stmt).mappings().one_or_none()

    @staticmethod
    def _subtree(path: str) -> ColumnElement[bool]:
        """Clause matching `path` and every descendant of it."""
        return or_(
            storage_entries.c.path == path,
            storage_entries.c.path.startswith(path + paths.SEPARATOR, autoescape=True),
        )

    def _ensure_file_slot(self, conn: Connection, path: str, reason: str) -> bool:
        """Check that `path` can hold a file; return True if a file is already there."""
        if path == paths.ROOT:
            raise PathConflictError(path, reason)
        row = self._fetch(conn, path)
        if row is not None and row["kind"] != EntryKind.FILE.value:
            raise PathConflictError(path, reason)
        return row is not None

    def _ensure_parents(self, conn: Connection, path: str) -> None:
        """Insert missing ancestor directories of `path`."""
        for parent in paths.ancestors(path):
            row = self._fetch(conn, parent)
            if row is None:
                self._insert_dir(conn, parent)
            elif row["kind"] != EntryKind.DIRECTORY.value:
                raise PathConflictError(parent, "a parent path is a file")

    def _insert_dir(self, conn: Connection, path: str) -> Metadata:
        now = self._clock()
        conn.execute(
            insert(storage_entries).values(
                path=path,
                parent=paths.parent_of(path),
                kind=EntryKind.DIRECTORY.value,
                contents=None,
                size=None,
                updated_at=now,
            )
        )
        return Metadata(
            kind=EntryKind.DIRECTORY, path=path, timestamp=int(now.timestamp())
        )

    def _put_file(self, conn: Connection, path: str, data: bytes) -> Metadata:
        """Insert or replace the file row at `path`."""
        now = self._clock()
        values = {"contents": data, "size": len(data), "updated_at": now}
        result = conn.execute(
            update(storage_entries)
            .where(storage_entries.c.path == path)
            .values(**values)
        )
        if result.rowcount == 0:
            conn.execute(
                insert(storage_entries).values(
                    path=path,
                    parent=paths.parent_of(path),
                    kind=EntryKind.FILE.value,
                    **values,
                )
            )
        return Metadata(
            kind=EntryKind.FILE,
            path=path,
            size=len(data),
            timestamp=int(now.timestamp()),
        )

    @staticmethod
    def _to_metadata(row: RowMapping) -> Metadata:
        updated_at: datetime = row["updated_at"]
        return Metadata(
            kind=EntryKind(row["kind"]),
            path=row["path"],
            size=row["size"],
            timestamp=int(updated_at.timestamp()),
        )
