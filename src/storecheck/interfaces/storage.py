"""Storage adapter interface.

This module defines the backend-agnostic contract every storage adapter
implements: a hierarchical namespace of files and directories addressed by
normalized, forward-slash-separated paths.

Exports
-------
Value types
    - Visibility:   ``public`` / ``private`` access-control hint.
    - EntryKind:    ``file`` / ``dir``.
    - Metadata:     Descriptor of a single entry, returned by query operations.
    - WriteOptions: Per-call options for writes and directory creation.
    - FileContents: Complete payload returned by `read()`.
    - FileStream:   Readable stream returned by `read_stream()`; a context
      manager that closes the stream on exit.

Abstract interfaces
    - StorageAdapter: The contract under test.

Result conventions
------------------
- **Found**: a populated descriptor (`Metadata`, `FileContents`, `FileStream`).
- **Not found**: ``None`` for queries, ``False`` for mutations such as
  `delete()`, `copy()` and `rename()`. Absence is never raised.
- **Unsupported**: `UnsupportedOperationError` is raised when an operation lies
  outside the adapter's declared capabilities (see `supports_visibility`).

Paths
-----
Paths are normalized before use: backslashes become slashes, repeated,
leading and trailing slashes are dropped, ``.`` and ``..`` segments are
resolved. The empty string is the storage root. Every other character,
including brackets, braces and spaces, is literal.

Typical usage
-------------
    adapter.write("reports/2024.txt", b"contents")
    if adapter.has("reports/2024.txt"):
        with adapter.read_stream("reports/2024.txt") as fs:
            data = fs.stream.read()
    for entry in adapter.list_contents("reports"):
        print(entry.kind, entry.path)
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field, replace
from enum import Enum
from types import TracebackType
from typing import BinaryIO


class Visibility(str, Enum):
    """Access-control hint attached to a stored entry."""

    PUBLIC = "public"
    PRIVATE = "private"


class EntryKind(str, Enum):
    """Kind of a filesystem entry."""

    FILE = "file"
    DIRECTORY = "dir"


@dataclass(frozen=True)
class Metadata:
    """Descriptor of one entry in an adapter's namespace.

    Attributes:
        kind: Whether the entry is a file or a directory.
        path: Normalized path of the entry.
        size: Size in bytes (files only).
        timestamp: Last-modified time in whole seconds since the epoch.
        visibility: Visibility, when the adapter supports the concept.
        mimetype: Detected content type, when it could be determined.
    """

    kind: EntryKind
    path: str
    size: int | None = None
    timestamp: int | None = None
    visibility: Visibility | None = None
    mimetype: str | None = None

    @property
    def is_file(self) -> bool:
        """Return True if the entry is a file."""
        return self.kind is EntryKind.FILE

    @property
    def is_dir(self) -> bool:
        """Return True if the entry is a directory."""
        return self.kind is EntryKind.DIRECTORY

    def with_changes(self, **changes: object) -> Metadata:
        """Return a copy of this record with the given attributes replaced."""
        return replace(self, **changes)  # type: ignore[arg-type]


@dataclass(frozen=True)
class WriteOptions:
    """Options accepted by `write()`, `write_stream()` and `create_dir()`.

    Attributes:
        visibility: Visibility to apply; ``None`` uses the adapter default.
    """

    visibility: Visibility | None = None


@dataclass(frozen=True)
class FileContents:
    """Complete contents of a file."""

    path: str
    contents: bytes


@dataclass
class FileStream:
    """Readable stream over a file's contents.

    The **caller** owns the stream and must release it, preferably by using
    the `FileStream` as a context manager.
    """

    path: str
    stream: BinaryIO = field(repr=False)

    def close(self) -> None:
        """Release the underlying stream. Safe to call multiple times."""
        self.stream.close()

    @property
    def closed(self) -> bool:
        """Return True once the underlying stream has been released."""
        return self.stream.closed

    def __enter__(self) -> FileStream:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class StorageAdapter(abc.ABC):
    """Abstract base class for hierarchical storage backends."""

    # --- Capabilities ---

    @property
    def supports_visibility(self) -> bool:
        """Return True if this adapter implements the visibility operations.

        Adapters that return False MUST raise `UnsupportedOperationError` from
        `get_visibility()` and `set_visibility()`.
        """
        return True

    # --- Writes ---

    @abc.abstractmethod
    def write(
        self, path: str, contents: bytes, options: WriteOptions | None = None
    ) -> Metadata:
        """Store `contents` at `path`, replacing any existing file.

        Parent directories are created as needed.

        Args:
            path: Destination path.
            contents: Complete payload.
            options: Optional write options (e.g. visibility).

        Returns:
            Metadata: Descriptor of the written file.

        Raises:
            PathConflictError: If `path` (or one of its parents) is occupied by
                an entry of the other kind.
            PathTraversalError: If `path` escapes the storage root.
        """

    @abc.abstractmethod
    def write_stream(
        self, path: str, stream: BinaryIO, options: WriteOptions | None = None
    ) -> Metadata:
        """Store bytes read from `stream` at `path`, replacing any existing file.

        The stream is consumed from its *current position* until EOF and is
        **not** closed by this method. An empty stream yields an empty file.

        Args:
            path: Destination path.
            stream: Readable binary stream.
            options: Optional write options (e.g. visibility).

        Returns:
            Metadata: Descriptor of the written file.
        """

    @abc.abstractmethod
    def create_dir(self, path: str, options: WriteOptions | None = None) -> Metadata:
        """Create a directory (and any missing parents).

        Idempotent: creating an existing directory succeeds and does not
        produce a second listing entry.

        Raises:
            PathConflictError: If a file already occupies `path`.
        """

    # --- Reads ---

    @abc.abstractmethod
    def has(self, path: str) -> bool:
        """Return True if a file or directory exists at `path`."""

    @abc.abstractmethod
    def read(self, path: str) -> FileContents | None:
        """Return the complete contents of the file at `path`, or None."""

    @abc.abstractmethod
    def read_stream(self, path: str) -> FileStream | None:
        """Open the file at `path` for reading, or return None if absent.

        Example:
            with adapter.read_stream("path.txt") as fs:
                data = fs.stream.read()
        """

    @abc.abstractmethod
    def list_contents(self, directory: str = "", recursive: bool = False) -> list[Metadata]:
        """List entries beneath `directory`.

        Shallow listings return the immediate children, files and
        subdirectories alike. Recursive listings return every descendant file;
        directories are not listed. Order is unspecified. An absent directory
        lists as empty.
        """

    @abc.abstractmethod
    def get_metadata(self, path: str) -> Metadata | None:
        """Return the descriptor of the entry at `path`, or None if absent."""

    def get_size(self, path: str) -> Metadata | None:
        """Return a descriptor carrying `size`, or None for absent paths and
        directories."""
        meta = self.get_metadata(path)
        if meta is None or not meta.is_file:
            return None
        return meta

    def get_timestamp(self, path: str) -> Metadata | None:
        """Return a descriptor carrying `timestamp`, or None if absent."""
        meta = self.get_metadata(path)
        if meta is None or meta.timestamp is None:
            return None
        return meta

    @abc.abstractmethod
    def get_mimetype(self, path: str) -> Metadata | None:
        """Return a descriptor carrying `mimetype`.

        Returns None when the path is absent, is a directory, or when the
        content type cannot be determined.
        """

    @abc.abstractmethod
    def get_visibility(self, path: str) -> Metadata | None:
        """Return a descriptor carrying `visibility`, or None if absent.

        Raises:
            UnsupportedOperationError: If `supports_visibility` is False.
        """

    # --- Mutations ---

    @abc.abstractmethod
    def set_visibility(self, path: str, visibility: Visibility) -> Metadata | None:
        """Change the visibility of the entry at `path`.

        Returns:
            The updated descriptor, or None if `path` is absent.

        Raises:
            UnsupportedOperationError: If `supports_visibility` is False.
        """

    @abc.abstractmethod
    def delete(self, path: str) -> bool:
        """Delete the file at `path`.

        Returns:
            True if a file was removed; False (not an error) if none existed.
        """

    @abc.abstractmethod
    def delete_dir(self, path: str) -> bool:
        """Recursively delete the directory at `path` and its contents.

        Returns:
            True if a directory was removed; False if none existed.
        """

    @abc.abstractmethod
    def copy(self, source: str, destination: str) -> bool:
        """Copy the file at `source` to `destination`.

        Contents and, where supported, visibility are duplicated. An existing
        destination is overwritten.

        Returns:
            True on success; False if `source` is not an existing file.
        """

    @abc.abstractmethod
    def rename(self, source: str, destination: str) -> bool:
        """Move the file or directory at `source` to `destination`.

        After success `source` no longer exists.

        Returns:
            True on success; False (with no state change) if `source` is absent.
        """
