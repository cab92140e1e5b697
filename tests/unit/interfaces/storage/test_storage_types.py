"""Unit tests for the storage value types and error hierarchy."""

from __future__ import annotations

import dataclasses
import io

import pytest

from storecheck.interfaces.errors import (
    PathConflictError,
    PathTraversalError,
    StorageError,
    StorageUnavailableError,
    UnsupportedOperationError,
)
from storecheck.interfaces.storage import (
    EntryKind,
    FileStream,
    Metadata,
    StorageAdapter,
    Visibility,
    WriteOptions,
)


def test_enums_use_wire_values():
    assert Visibility("public") is Visibility.PUBLIC
    assert Visibility("private") is Visibility.PRIVATE
    assert EntryKind("dir") is EntryKind.DIRECTORY
    assert EntryKind.FILE == "file"


def test_metadata_kind_helpers_and_with_changes():
    meta = Metadata(kind=EntryKind.FILE, path="a.txt", size=3)

    assert meta.is_file and not meta.is_dir
    updated = meta.with_changes(mimetype="text/plain")
    assert updated.mimetype == "text/plain"
    assert updated.size == 3
    assert meta.mimetype is None  # original untouched


def test_value_types_are_frozen():
    meta = Metadata(kind=EntryKind.DIRECTORY, path="d")
    with pytest.raises(dataclasses.FrozenInstanceError):
        meta.path = "other"  # type: ignore[misc]
    with pytest.raises(dataclasses.FrozenInstanceError):
        WriteOptions().visibility = Visibility.PUBLIC  # type: ignore[misc]


def test_file_stream_closes_on_context_exit_even_on_error():
    fs = FileStream(path="a.txt", stream=io.BytesIO(b"data"))

    with pytest.raises(RuntimeError):
        with fs:
            assert fs.stream.read() == b"data"
            raise RuntimeError("boom")

    assert fs.closed
    fs.close()  # idempotent


@pytest.mark.parametrize(
    "error",
    [
        UnsupportedOperationError("get_visibility", "SomeAdapter"),
        PathTraversalError("../x"),
        PathConflictError("a", "a file already exists"),
        StorageUnavailableError("down"),
    ],
)
def test_errors_share_a_base(error: StorageError):
    assert isinstance(error, StorageError)


def test_unsupported_operation_error_names_operation_and_adapter():
    err = UnsupportedOperationError("set_visibility", "SqlAlchemyStorageAdapter")

    assert err.operation == "set_visibility"
    assert err.adapter == "SqlAlchemyStorageAdapter"
    assert str(err) == "SqlAlchemyStorageAdapter does not support set_visibility()"


def test_path_conflict_error_message():
    err = PathConflictError("a/b", "a parent path is a file")
    assert err.path == "a/b" and err.reason == "a parent path is a file"
    assert "a/b" in str(err) and "parent path is a file" in str(err)


def test_storage_adapter_is_abstract():
    with pytest.raises(TypeError):
        StorageAdapter()  # type: ignore[abstract]
