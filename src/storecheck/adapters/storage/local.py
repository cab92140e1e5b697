"""Local filesystem storage adapter.

Entries live as regular files and directories beneath a root directory.
Visibility is expressed through POSIX permission bits:

| Kind      | public  | private |
|-----------|---------|---------|
| file      | 0o644   | 0o600   |
| directory | 0o755   | 0o700   |

Writes stage to a temporary file in the target directory and are moved into
place with `os.replace`, so readers never observe partially written files.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from collections.abc import Callable
from pathlib import Path
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

__all__ = ["LocalStorageAdapter", "PERMISSIONS"]

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

PERMISSIONS: dict[EntryKind, dict[Visibility, int]] = {
    EntryKind.FILE: {Visibility.PUBLIC: 0o644, Visibility.PRIVATE: 0o600},
    EntryKind.DIRECTORY: {Visibility.PUBLIC: 0o755, Visibility.PRIVATE: 0o700},
}


class LocalStorageAdapter(StorageAdapter):
    """`StorageAdapter` implementation that uses the local filesystem."""

    def __init__(
        self, root: str | os.PathLike[str], default_visibility: Visibility = Visibility.PUBLIC
    ) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._default_visibility = default_visibility

    @property
    def root(self) -> Path:
        """Directory that holds every stored entry."""
        return self._root

    # --- Writes ---

    def write(
        self, path: str, contents: bytes, options: WriteOptions | None = None
    ) -> Metadata:
        path = paths.normalize_path(path)
        target = self._prepare_file_target(path)

        staged = self._stage(target, lambda tmp: tmp.write(contents))
        return self._install(path, staged, target, options)

    def write_stream(
        self, path: str, stream: BinaryIO, options: WriteOptions | None = None
    ) -> Metadata:
        path = paths.normalize_path(path)
        target = self._prepare_file_target(path)

        def pump(tmp: BinaryIO) -> None:
            for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
                tmp.write(chunk)

        staged = self._stage(target, pump)
        return self._install(path, staged, target, options)

    def create_dir(self, path: str, options: WriteOptions | None = None) -> Metadata:
        path = paths.normalize_path(path)
        target = self._resolve(path)
        if target.is_file():
            raise PathConflictError(path, "a file already exists")
        if not target.is_dir():
            self._make_parents(path)
            try:
                target.mkdir()
            except FileExistsError:
                # Lost a race with another creator; idempotent unless it is a file.
                if not target.is_dir():
                    raise PathConflictError(path, "a file already exists") from None
            else:
                visibility = (options or WriteOptions()).visibility
                self._chmod(target, EntryKind.DIRECTORY, visibility or self._default_visibility)
        return self._stat_metadata(path, target)

    # --- Reads ---

    def has(self, path: str) -> bool:
        return self._resolve(paths.normalize_path(path)).exists()

    def read(self, path: str) -> FileContents | None:
        path = paths.normalize_path(path)
        try:
            data = self._resolve(path).read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None
        return FileContents(path=path, contents=data)

    def read_stream(self, path: str) -> FileStream | None:
        path = paths.normalize_path(path)
        target = self._resolve(path)
        if not target.is_file():
            return None
        try:
            return FileStream(path=path, stream=target.open("rb"))
        except FileNotFoundError:
            return None

    def list_contents(self, directory: str = "", recursive: bool = False) -> list[Metadata]:
        directory = paths.normalize_path(directory)
        base = self._resolve(directory)
        if not base.is_dir():
            return []

        items: list[Metadata] = []
        if recursive:
            for dirpath, dirnames, filenames in os.walk(base):
                dirnames.sort()
                rel = Path(dirpath).relative_to(self._root).as_posix()
                for name in sorted(filenames):
                    path = paths.join(rel if rel != "." else "", name)
                    items.append(self._stat_metadata(path, Path(dirpath, name)))
            return items

        with os.scandir(base) as it:
            for entry in sorted(it, key=lambda e: e.name):
                path = paths.join(directory, entry.name)
                items.append(self._stat_metadata(path, Path(entry.path)))
        return items

    def get_metadata(self, path: str) -> Metadata | None:
        path = paths.normalize_path(path)
        target = self._resolve(path)
        try:
            return self._stat_metadata(path, target)
        except (FileNotFoundError, NotADirectoryError):
            return None

    def get_mimetype(self, path: str) -> Metadata | None:
        meta = self.get_metadata(path)
        if meta is None or not meta.is_file:
            return None
        with self._resolve(meta.path).open("rb") as f:
            head = f.read(HEAD_SIZE)
        if (mimetype := detect_mimetype(meta.path, head)) is None:
            return None
        return meta.with_changes(mimetype=mimetype)

    def get_visibility(self, path: str) -> Metadata | None:
        return self.get_metadata(path)

    # --- Mutations ---

    def set_visibility(self, path: str, visibility: Visibility) -> Metadata | None:
        meta = self.get_metadata(path)
        if meta is None:
            return None
        target = self._resolve(meta.path)
        self._chmod(target, meta.kind, Visibility(visibility))
        return self._stat_metadata(meta.path, target)

    def delete(self, path: str) -> bool:
        path = paths.normalize_path(path)
        target = self._resolve(path)
        if not target.is_file():
            return False
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        logger.debug("deleted %r", path)
        return True

    def delete_dir(self, path: str) -> bool:
        path = paths.normalize_path(path)
        target = self._resolve(path)
        if not target.is_dir():
            return False
        if path == paths.ROOT:
            for child in list(target.iterdir()):
                if child.is_dir() and not child.is_symlink():
                    shutil.rmtree(child)
                else:
                    child.unlink()
        else:
            shutil.rmtree(target)
        logger.debug("deleted directory %r", path)
        return True

    def copy(self, source: str, destination: str) -> bool:
        source = paths.normalize_path(source)
        destination = paths.normalize_path(destination)
        src = self._resolve(source)
        if not src.is_file():
            return False
        dest = self._prepare_file_target(destination)
        visibility = self._visibility_of(src)

        def pump(tmp: BinaryIO) -> None:
            with src.open("rb") as f:
                shutil.copyfileobj(f, tmp, CHUNK_SIZE)

        staged = self._stage(dest, pump)
        self._install(destination, staged, dest, WriteOptions(visibility=visibility))
        return True

    def rename(self, source: str, destination: str) -> bool:
        source = paths.normalize_path(source)
        destination = paths.normalize_path(destination)
        src = self._resolve(source)
        if source == paths.ROOT or not src.exists():
            return False
        if source == destination:
            return True
        dest = self._resolve(destination)
        if src.is_dir():
            if paths.is_within(destination, source):
                raise PathConflictError(destination, "cannot move a directory into itself")
            if dest.exists():
                raise PathConflictError(destination, "destination already exists")
            self._make_parents(destination)
        else:
            dest = self._prepare_file_target(destination)
        os.replace(src, dest)
        logger.debug("renamed %r to %r", source, destination)
        return True

    # --- Internal Helpers ---

    def _resolve(self, path: str) -> Path:
        """Map a normalized path onto the filesystem beneath the root."""
        if path == paths.ROOT:
            return self._root
        return self._root.joinpath(*path.split(paths.SEPARATOR))

    def _make_parents(self, path: str) -> None:
        """Create missing ancestor directories of `path` with default visibility."""
        for parent in paths.ancestors(path):
            directory = self._resolve(parent)
            if directory.is_dir():
                continue
            if directory.exists():
                raise PathConflictError(parent, "a parent path is a file")
            try:
                directory.mkdir()
            except FileExistsError:
                if not directory.is_dir():
                    raise PathConflictError(parent, "a parent path is a file") from None
                continue
            self._chmod(directory, EntryKind.DIRECTORY, self._default_visibility)

    def _prepare_file_target(self, path: str) -> Path:
        """Validate `path` as a file destination and create its parents."""
        target = self._resolve(path)
        if path == paths.ROOT or target.is_dir():
            raise PathConflictError(path, "a directory already exists")
        self._make_parents(path)
        return target

    @staticmethod
    def _stage(target: Path, writer: Callable[[BinaryIO], object]) -> Path:
        """Fill a temporary file next to `target`; it is removed if `writer` fails."""
        with tempfile.NamedTemporaryFile(dir=target.parent, delete=False) as tmp:  # pragma: no mutate
            staged = Path(tmp.name)
            try:
                writer(tmp)  # type: ignore[arg-type]
            except BaseException:
                tmp.close()
                staged.unlink(missing_ok=True)
                raise
        return staged

    def _install(
        self, path: str, staged: Path, target: Path, options: WriteOptions | None
    ) -> Metadata:
        """Apply visibility to a staged file and atomically move it into place."""
        visibility = (options or WriteOptions()).visibility
        if visibility is None:
            visibility = (
                self._visibility_of(target)
                if target.is_file()
                else self._default_visibility
            )
        try:
            self._chmod(staged, EntryKind.FILE, visibility)
            os.replace(staged, target)
        except BaseException:
            staged.unlink(missing_ok=True)
            raise
        logger.debug("wrote %r", path)
        return self._stat_metadata(path, target)

    def _stat_metadata(self, path: str, target: Path) -> Metadata:
        """Build a descriptor from `os.stat`; raises FileNotFoundError if absent."""
        st = target.stat()
        kind = EntryKind.DIRECTORY if stat.S_ISDIR(st.st_mode) else EntryKind.FILE
        return Metadata(
            kind=kind,
            path=path,
            size=st.st_size if kind is EntryKind.FILE else None,
            timestamp=int(st.st_mtime),
            visibility=self._visibility_from_mode(st.st_mode),
        )

    def _visibility_of(self, target: Path) -> Visibility:
        return self._visibility_from_mode(target.stat().st_mode)

    @staticmethod
    def _visibility_from_mode(mode: int) -> Visibility:
        # Anything readable by "others" counts as public.
        return Visibility.PUBLIC if mode & stat.S_IROTH else Visibility.PRIVATE

    @staticmethod
    def _chmod(target: Path, kind: EntryKind, visibility: Visibility) -> None:
        os.chmod(target, PERMISSIONS[kind][visibility])
