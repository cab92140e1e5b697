"""Integration tests for `SqlAlchemyStorageAdapter`.

Covers behavior specific to the relational backend:
- schema creation and the constraint names from the naming convention,
- literal handling of ``%`` and ``_`` in prefix queries,
- whole-subtree renames and deletes,
- error mapping (`DBAPIError` -> `StorageUnavailableError`),
- rejection of unsupported dialects.

Tests parametrized over ``engine`` run on SQLite and, when
``STORECHECK_DB_URL`` names one, on PostgreSQL.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import inspect

from storecheck.adapters.db.engine import UnsupportedDialect, make_engine
from storecheck.adapters.storage import SqlAlchemyStorageAdapter
from storecheck.interfaces.errors import (
    PathConflictError,
    StorageUnavailableError,
    UnsupportedOperationError,
)
from storecheck.interfaces.storage import Visibility, WriteOptions

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

ENGINES = pytest.mark.parametrize(
    "engine", ["sqlite_engine_memory", "postgres_engine"], indirect=True
)


def test_schema_is_created_on_construction(sqlite_engine_file: Engine):
    assert not inspect(sqlite_engine_file).has_table("storage_entries")

    SqlAlchemyStorageAdapter(sqlite_engine_file)

    insp = inspect(sqlite_engine_file)
    assert insp.has_table("storage_entries")
    assert {ix["name"] for ix in insp.get_indexes("storage_entries")} == {
        "ix_storage_entries_parent"
    }


def test_schema_creation_can_be_disabled(sqlite_engine_file: Engine):
    SqlAlchemyStorageAdapter(sqlite_engine_file, create_schema=False)

    assert not inspect(sqlite_engine_file).has_table("storage_entries")


@ENGINES
def test_like_wildcards_are_literal(engine: Engine):
    adapter = SqlAlchemyStorageAdapter(engine)
    adapter.write("a%/x.txt", b"1")
    adapter.write("ab/y.txt", b"2")
    adapter.write("a_/z.txt", b"3")

    assert [e.path for e in adapter.list_contents("a%", recursive=True)] == ["a%/x.txt"]
    assert [e.path for e in adapter.list_contents("a_", recursive=True)] == ["a_/z.txt"]

    assert adapter.delete_dir("a_") is True
    assert adapter.has("ab/y.txt")
    assert adapter.has("a%/x.txt")


@ENGINES
def test_rename_directory_moves_every_row(engine: Engine):
    adapter = SqlAlchemyStorageAdapter(engine)
    adapter.write("src/a.txt", b"a")
    adapter.write("src/sub/b.txt", b"b")

    assert adapter.rename("src", "dst") is True

    assert not adapter.has("src")
    assert {e.path for e in adapter.list_contents("", recursive=True)} == {
        "dst/a.txt",
        "dst/sub/b.txt",
    }
    assert [e.path for e in adapter.list_contents("dst")] == ["dst/a.txt", "dst/sub"]


@ENGINES
def test_type_collisions_raise(engine: Engine):
    adapter = SqlAlchemyStorageAdapter(engine)
    adapter.create_dir("d")
    adapter.write("f", b"x")

    with pytest.raises(PathConflictError):
        adapter.write("d", b"x")
    with pytest.raises(PathConflictError):
        adapter.create_dir("f")
    with pytest.raises(PathConflictError):
        adapter.write("f/child.txt", b"x")

    # A failed write leaves nothing behind.
    assert adapter.get_metadata("f/child.txt") is None


def test_timestamps_come_from_the_clock(sqlite_engine_memory: Engine):
    fixed = datetime(2024, 1, 1, 12, 0, 0, 750_000, tzinfo=timezone.utc)
    adapter = SqlAlchemyStorageAdapter(sqlite_engine_memory, clock=lambda: fixed)

    written = adapter.write("f.txt", b"x")
    fetched = adapter.get_timestamp("f.txt")

    assert written.timestamp == 1_704_110_400
    assert fetched is not None and fetched.timestamp == 1_704_110_400


def test_visibility_is_not_supported(sqlite_engine_memory: Engine):
    adapter = SqlAlchemyStorageAdapter(sqlite_engine_memory)

    adapter.write("f.txt", b"x", WriteOptions(visibility=Visibility.PRIVATE))

    assert adapter.supports_visibility is False
    with pytest.raises(UnsupportedOperationError):
        adapter.get_visibility("f.txt")
    meta = adapter.get_metadata("f.txt")
    assert meta is not None and meta.visibility is None


def test_unreachable_database_raises_storage_unavailable(tmp_path):
    missing_dir = tmp_path / "does-not-exist" / "storage.db"
    engine = make_engine(f"sqlite+pysqlite:///{missing_dir}")
    try:
        with pytest.raises(StorageUnavailableError):
            SqlAlchemyStorageAdapter(engine)
    finally:
        engine.dispose()


def test_errors_during_operations_are_mapped(sqlite_engine_memory: Engine):
    adapter = SqlAlchemyStorageAdapter(sqlite_engine_memory)
    with sqlite_engine_memory.begin() as conn:
        conn.exec_driver_sql("DROP TABLE storage_entries")

    with pytest.raises(StorageUnavailableError):
        adapter.read("anything.txt")

    # Recreate so the fixture's drop_all() finds the table.
    SqlAlchemyStorageAdapter(sqlite_engine_memory)


def test_unsupported_dialect_is_rejected():
    class FakeEngine:
        """Engine stand-in reporting an unsupported dialect."""

        class dialect:  # pylint: disable=invalid-name,too-few-public-methods
            name = "mysql"

    with pytest.raises(UnsupportedDialect):
        SqlAlchemyStorageAdapter(FakeEngine(), create_schema=False)  # type: ignore[arg-type]
