"""Hypothesis property tests for the storage adapter contract.

These properties exercise backend-agnostic invariants over generated paths and
payloads:

- **Absence**: a path never written is reported missing by every query.
- **Round-trip**: any payload, including the empty one, reads back unchanged,
  whether written from bytes or from a stream.
- **Idempotent directories**: creating a directory twice lists it once.
- **Move semantics**: after `rename()` the source is gone and the destination
  holds the original contents.
- **Copy with collision**: copying over an existing file replaces its contents.
- **Deletion**: a deleted file is reported missing by every query.

An `adapter_factory` fixture returns a **fresh** adapter per generated example
to avoid state bleed between examples.
"""

from __future__ import annotations

import io
from collections.abc import Callable, Iterator

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from storecheck.adapters.db.engine import make_engine
from storecheck.adapters.storage import (
    InMemoryStorageAdapter,
    LocalStorageAdapter,
    SqlAlchemyStorageAdapter,
)
from storecheck.interfaces.storage import StorageAdapter

pytestmark = [pytest.mark.property]

## Adjust pylint to deal with fixtures
# pylint: disable=redefined-outer-name

# ============================================================================
#                               Strategies
# ============================================================================

# Brackets, braces, spaces, and SQL LIKE wildcards are all literal characters.
SEGMENT_ALPHABET = "abcXYZ019[]{} -_%"

segments = st.text(alphabet=SEGMENT_ALPHABET, min_size=1, max_size=12)
storage_paths = st.lists(segments, min_size=1, max_size=3).map("/".join)
payloads = st.binary(min_size=0, max_size=4_096)

# ============================================================================
#                               Fixtures
# ============================================================================


@pytest.fixture(scope="module", params=["memory", "local", "sqlite"])
def adapter_factory(
    request: pytest.FixtureRequest, tmp_path_factory: pytest.TempPathFactory
) -> Iterator[Callable[[], StorageAdapter]]:
    """Factory that returns a **fresh** adapter per Hypothesis example.

    SQLite examples share one in-memory engine, emptied before each example
    and disposed when the module finishes.
    """
    engine = make_engine("sqlite+pysqlite:///:memory:") if request.param == "sqlite" else None

    def make() -> StorageAdapter:
        match request.param:
            case "memory":
                return InMemoryStorageAdapter()
            case "local":
                return LocalStorageAdapter(tmp_path_factory.mktemp("props"))
            case "sqlite":
                assert engine is not None
                adapter = SqlAlchemyStorageAdapter(engine)
                adapter.delete_dir("")
                return adapter
            case _:
                raise ValueError(f"unknown adapter type: {request.param}")

    yield make
    if engine is not None:
        engine.dispose()


# ============================================================================
#                               Tests
# ============================================================================


# Keep small for CI (~50), can be larger locally.
_PROPSET = settings(max_examples=50, deadline=None)


# 1) Absence: nothing is reported for a path that was never written
@_PROPSET
@given(path=storage_paths)
def test_missing_paths_are_absent_everywhere(
    adapter_factory: Callable[[], StorageAdapter], path: str
):
    """Every query reports a never-written path as missing."""
    adapter = adapter_factory()

    assert adapter.has(path) is False
    assert adapter.read(path) is None
    assert adapter.read_stream(path) is None
    assert adapter.get_size(path) is None
    assert adapter.get_timestamp(path) is None
    assert adapter.get_mimetype(path) is None
    assert adapter.get_metadata(path) is None


# 2) Round-trip through bytes and through a stream
@_PROPSET
@given(path=storage_paths, data=payloads)
def test_write_read_roundtrip(
    adapter_factory: Callable[[], StorageAdapter], path: str, data: bytes
):
    """`write` then `read` returns the same bytes; `write_stream` agrees."""
    adapter = adapter_factory()

    meta = adapter.write(path, data)
    assert meta.is_file and meta.size == len(data)
    result = adapter.read(path)
    assert result is not None and result.contents == data

    stream = io.BytesIO(data)
    adapter.write_stream(path, stream)
    assert not stream.closed
    fs = adapter.read_stream(path)
    assert fs is not None
    with fs:
        assert fs.stream.read() == data


# 3) Idempotent directory creation
@_PROPSET
@given(path=storage_paths)
def test_create_dir_twice_lists_once(
    adapter_factory: Callable[[], StorageAdapter], path: str
):
    """Creating a directory twice leaves exactly one listing entry for it."""
    adapter = adapter_factory()
    parent, _, _ = path.rpartition("/")

    adapter.create_dir(path)
    adapter.create_dir(path)

    matching = [e for e in adapter.list_contents(parent) if e.path == path]
    assert len(matching) == 1
    assert matching[0].is_dir


# 4) Move semantics
@_PROPSET
@given(source=storage_paths, destination=storage_paths, data=payloads)
def test_rename_moves_contents(
    adapter_factory: Callable[[], StorageAdapter],
    source: str,
    destination: str,
    data: bytes,
):
    """After `rename`, the source is gone and the destination has its bytes."""
    # Neither path may be an ancestor of the other (file vs. directory clash).
    assume(source != destination)
    assume(not destination.startswith(source + "/"))
    assume(not source.startswith(destination + "/"))
    adapter = adapter_factory()
    adapter.write(source, data)

    assert adapter.rename(source, destination) is True

    assert adapter.has(source) is False
    result = adapter.read(destination)
    assert result is not None and result.contents == data


# 5) Copy with collision replaces the destination
@_PROPSET
@given(a=payloads, b=payloads)
def test_copy_overwrites_destination(
    adapter_factory: Callable[[], StorageAdapter], a: bytes, b: bytes
):
    """Copying A over an existing B leaves B equal to A, and A untouched."""
    adapter = adapter_factory()
    adapter.write("a.bin", a)
    adapter.write("b.bin", b)

    assert adapter.copy("a.bin", "b.bin") is True

    result_b = adapter.read("b.bin")
    result_a = adapter.read("a.bin")
    assert result_b is not None and result_b.contents == a
    assert result_a is not None and result_a.contents == a


# 6) Deleted files are absent
@_PROPSET
@given(path=storage_paths, data=payloads)
def test_deleted_file_is_absent(
    adapter_factory: Callable[[], StorageAdapter], path: str, data: bytes
):
    """After `delete`, `has` is false and reads return None; deleting again is a no-op."""
    adapter = adapter_factory()
    adapter.write(path, data)

    assert adapter.delete(path) is True

    assert adapter.has(path) is False
    assert adapter.read(path) is None
    assert adapter.get_metadata(path) is None
    assert adapter.delete(path) is False
