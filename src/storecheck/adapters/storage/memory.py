"""In-memory storage adapter.

This module provides a tiny, dependency-free `StorageAdapter` meant for
**tests**, examples, and as the reference implementation of the contract.
Entries are kept entirely in RAM; there is no persistence across process
restarts.

Exports
-------
- InMemoryStorageAdapter: Concrete `StorageAdapter` backed by a dict.

Key behaviors
-------------
- **Explicit directories**: every directory is an entry of its own. Writing
  ``a/b/c.txt`` materializes ``a`` and ``a/b`` so shallow listings see them.
- **Visibility**: supported. Entries carry a `Visibility`; new entries get the
  adapter default unless `WriteOptions.visibility` says otherwise, and an
  overwrite keeps the previous visibility unless told otherwise.
- **Timestamps**: taken from an injectable clock (default `time.time`) and
  truncated to whole seconds.
- **Thread-safety**: every operation runs under an `RLock`.

Typical usage
-------------
    adapter = InMemoryStorageAdapter()
    adapter.write("some/file.txt", b"hello")
    assert adapter.read("some/file.txt").contents == b"hello"
    assert [e.path for e in adapter.list_contents()] == ["some"]
"""

from __future__ import annotations

import io
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import BinaryIO

from storecheck.interfaces.errors import PathConflictError
from storecheck.interfaces.storage import (
    EntryKind,
    FileContents,
    FileStream,
    Metadata,
    StorageAdapter,
    Visibility,
    WriteOptions,
)

from . import paths
from .mime import HEAD_SIZE, detect_mimetype

__all__ = ["InMemoryStorageAdapter"]

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


@dataclass
class _Entry:
    kind: EntryKind
    timestamp: int
    visibility: Visibility
    contents: bytes = b""


class InMemoryStorageAdapter(StorageAdapter):
    """Reference `StorageAdapter` that keeps every entry in a dict.

    Args:
        default_visibility: Visibility given to entries created without an
            explicit `WriteOptions.visibility`.
        clock: Callable returning the current time in seconds since the epoch.
    """

    def __init__(
        self,
        default_visibility: Visibility = Visibility.PUBLIC,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._default_visibility = default_visibility
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.RLock()

    # ---- Writes ----

    def write(
        self, path: str, contents: bytes, options: WriteOptions | None = None
    ) -> Metadata:
        path = paths.normalize_path(path)
        options = options or WriteOptions()
        with self._lock:
            existing = self._file_or_none(path, "cannot overwrite a directory")
            self._ensure_parents(path)
            visibility = options.visibility or (
                existing.visibility if existing else self._default_visibility
            )
            entry = _Entry(
                kind=EntryKind.FILE,
                timestamp=self._now(),
                visibility=visibility,
                contents=bytes(contents),
            )
            self._entries[path] = entry
        logger.debug("wrote %d bytes to %r", len(contents), path)
        return self._to_metadata(path, entry)

    def write_stream(
        self, path: str, stream: BinaryIO, options: WriteOptions | None = None
    ) -> Metadata:
        data = b"".join(iter(lambda: stream.read(_CHUNK), b""))
        return self.write(path, data, options)

    def create_dir(self, path: str, options: WriteOptions | None = None) -> Metadata:
        path = paths.normalize_path(path)
        options = options or WriteOptions()
        with self._lock:
            if path == paths.ROOT:
                return Metadata(kind=EntryKind.DIRECTORY, path=path)
            entry = self._entries.get(path)
            if entry is None:
                self._ensure_parents(path)
                entry = _Entry(
                    kind=EntryKind.DIRECTORY,
                    timestamp=self._now(),
                    visibility=options.visibility or self._default_visibility,
                )
                self._entries[path] = entry
            elif entry.kind is EntryKind.FILE:
                raise PathConflictError(path, "a file already exists")
        return self._to_metadata(path, entry)

    # ---- Reads ----

    def has(self, path: str) -> bool:
        path = paths.normalize_path(path)
        if path == paths.ROOT:
            return True
        with self._lock:
            return path in self._entries

    def read(self, path: str) -> FileContents | None:
        path = paths.normalize_path(path)
        with self._lock:
            entry = self._entries.get(path)
            if entry is None or entry.kind is not EntryKind.FILE:
                return None
            return FileContents(path=path, contents=entry.contents)

    def read_stream(self, path: str) -> FileStream | None:
        if (contents := self.read(path)) is None:
            return None
        return FileStream(path=contents.path, stream=io.BytesIO(contents.contents))

    def list_contents(self, directory: str = "", recursive: bool = False) -> list[Metadata]:
        directory = paths.normalize_path(directory)
        with self._lock:
            items = sorted(self._entries.items())
        if recursive:
            return [
                self._to_metadata(path, entry)
                for path, entry in items
                if entry.kind is EntryKind.FILE and paths.is_within(path, directory)
            ]
        return [
            self._to_metadata(path, entry)
            for path, entry in items
            if paths.is_child(path, directory)
        ]

    def get_metadata(self, path: str) -> Metadata | None:
        path = paths.normalize_path(path)
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                return None
            return self._to_metadata(path, entry)

    def get_mimetype(self, path: str) -> Metadata | None:
        path = paths.normalize_path(path)
        with self._lock:
            entry = self._entries.get(path)
            if entry is None or entry.kind is not EntryKind.FILE:
                return None
            meta = self._to_metadata(path, entry)
            head = entry.contents[:HEAD_SIZE]
        if (mimetype := detect_mimetype(path, head)) is None:
            return None
        return meta.with_changes(mimetype=mimetype)

    def get_visibility(self, path: str) -> Metadata | None:
        return self.get_metadata(path)

    # ---- Mutations ----

    def set_visibility(self, path: str, visibility: Visibility) -> Metadata | None:
        path = paths.normalize_path(path)
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                return None
            entry.visibility = Visibility(visibility)
            return self._to_metadata(path, entry)

    def delete(self, path: str) -> bool:
        path = paths.normalize_path(path)
        with self._lock:
            entry = self._entries.get(path)
            if entry is None or entry.kind is not EntryKind.FILE:
                return False
            del self._entries[path]
        logger.debug("deleted %r", path)
        return True

    def delete_dir(self, path: str) -> bool:
        path = paths.normalize_path(path)
        with self._lock:
            if path != paths.ROOT:
                entry = self._entries.get(path)
                if entry is None or entry.kind is not EntryKind.DIRECTORY:
                    return False
                del self._entries[path]
            doomed = [p for p in self._entries if paths.is_within(p, path)]
            for p in doomed:
                del self._entries[p]
        logger.debug("deleted directory %r (%d descendants)", path, len(doomed))
        return True

    def copy(self, source: str, destination: str) -> bool:
        source = paths.normalize_path(source)
        destination = paths.normalize_path(destination)
        with self._lock:
            entry = self._entries.get(source)
            if entry is None or entry.kind is not EntryKind.FILE:
                return False
            self._file_or_none(destination, "cannot copy over a directory")
            self._ensure_parents(destination)
            self._entries[destination] = _Entry(
                kind=EntryKind.FILE,
                timestamp=self._now(),
                visibility=entry.visibility,
                contents=entry.contents,
            )
        return True

    def rename(self, source: str, destination: str) -> bool:
        source = paths.normalize_path(source)
        destination = paths.normalize_path(destination)
        with self._lock:
            entry = self._entries.get(source)
            if entry is None:
                return False
            if source == destination:
                return True
            if entry.kind is EntryKind.FILE:
                self._file_or_none(destination, "cannot move a file over a directory")
            else:
                if paths.is_within(destination, source):
                    raise PathConflictError(destination, "cannot move a directory into itself")
                if destination == paths.ROOT or destination in self._entries:
                    raise PathConflictError(destination, "destination already exists")
            self._ensure_parents(destination)
            moved = [
                p for p in self._entries if p == source or paths.is_within(p, source)
            ]
            for p in moved:
                self._entries[paths.rebase(p, source, destination)] = self._entries.pop(p)
        logger.debug("renamed %r to %r", source, destination)
        return True

    # ---- Internals ----

    def _now(self) -> int:
        return int(self._clock())

    def _file_or_none(self, path: str, reason: str) -> _Entry | None:
        """Return the file entry at `path`, None if vacant, or raise if a directory."""
        if path == paths.ROOT:
            raise PathConflictError(path, reason)
        entry = self._entries.get(path)
        if entry is not None and entry.kind is not EntryKind.FILE:
            raise PathConflictError(path, reason)
        return entry

    def _ensure_parents(self, path: str) -> None:
        """Materialize missing ancestor directories of `path`."""
        for parent in paths.ancestors(path):
            entry = self._entries.get(parent)
            if entry is None:
                self._entries[parent] = _Entry(
                    kind=EntryKind.DIRECTORY,
                    timestamp=self._now(),
                    visibility=self._default_visibility,
                )
            elif entry.kind is not EntryKind.DIRECTORY:
                raise PathConflictError(parent, "a parent path is a file")

    @staticmethod
    def _to_metadata(path: str, entry: _Entry) -> Metadata:
        return Metadata(
            kind=entry.kind,
            path=path,
            size=len(entry.contents) if entry.kind is EntryKind.FILE else None,
            timestamp=entry.timestamp,
            visibility=entry.visibility,
        )
