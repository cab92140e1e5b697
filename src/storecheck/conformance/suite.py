"""Reusable conformance suite for `StorageAdapter` implementations.

Backend authors subclass `StorageAdapterConformance` in a ``Test*`` class and
implement `create_adapter()`. pytest then collects every scenario below for
that backend:

    class TestMyAdapter(StorageAdapterConformance):
        @classmethod
        def create_adapter(cls) -> StorageAdapter:
            return MyAdapter(...)

Lifecycle
---------
- The adapter is created lazily on first use and memoized for the whole test
  class (see `AdapterContext`).
- The store is emptied before and after every scenario, so scenarios never
  observe each other's state.
- If `create_adapter()` raises `StorageUnavailableError` the scenario is
  skipped; any other construction fault errors it.
- Scenarios run through `retry_call`; set `RETRY_ON` to the exception types a
  flaky backend may raise spuriously.

Visibility assertions branch on `StorageAdapter.supports_visibility`, never on
the adapter's type.
"""

from __future__ import annotations

import functools
import io
import logging
import time
from collections.abc import Callable, Iterator, Sequence
from importlib import resources
from typing import ClassVar, TypeVar

import pytest

from storecheck.config import get_retry_attempts
from storecheck.interfaces.errors import (
    StorageUnavailableError,
    UnsupportedOperationError,
)
from storecheck.interfaces.storage import (
    EntryKind,
    Metadata,
    StorageAdapter,
    Visibility,
    WriteOptions,
)

from .context import AdapterContext
from .retry import retry_call

__all__ = ["SPECIAL_PATHS", "StorageAdapterConformance", "scenario"]

logger = logging.getLogger(__name__)

# pylint: disable=redefined-outer-name,attribute-defined-outside-init

T = TypeVar("T")

FIXTURES_PACKAGE = "storecheck.conformance"

#: Accepted clock skew, in seconds, between the backend and the test process.
TIMESTAMP_TOLERANCE = 30

SPECIAL_PATHS = [
    pytest.param("some/file[name].txt", id="square brackets in filename 1"),
    pytest.param("some/file[0].txt", id="square brackets in filename 2"),
    pytest.param("some/file[10].txt", id="square brackets in filename 3"),
    pytest.param("some[name]/file.txt", id="square brackets in dirname 1"),
    pytest.param("some[0]/file.txt", id="square brackets in dirname 2"),
    pytest.param("some[10]/file.txt", id="square brackets in dirname 3"),
    pytest.param("some/file{name}.txt", id="curly brackets in filename 1"),
    pytest.param("some/file{0}.txt", id="curly brackets in filename 2"),
    pytest.param("some/file{10}.txt", id="curly brackets in filename 3"),
    pytest.param("some{name}/filename.txt", id="curly brackets in dirname 1"),
    pytest.param("some{0}/filename.txt", id="curly brackets in dirname 2"),
    pytest.param("some{10}/filename.txt", id="curly brackets in dirname 3"),
    pytest.param("some dir/filename.txt", id="space in dirname"),
    pytest.param("somedir/file name.txt", id="space in filename"),
]


def scenario(func: Callable[..., None]) -> Callable[..., None]:
    """Run a test method's body through `StorageAdapterConformance.run_scenario`."""

    @functools.wraps(func)
    def wrapper(self: StorageAdapterConformance, *args: object, **kwargs: object) -> None:
        self.run_scenario(functools.partial(func, self, *args, **kwargs))

    return wrapper


class StorageAdapterConformance:
    """Base class holding the storage adapter conformance scenarios.

    Class attributes:
        RETRY_ON: Exception types that make a scenario run again.
        RETRY_ATTEMPTS: Total attempts per scenario; ``None`` reads
            `STORECHECK_RETRY_ATTEMPTS` (default 3).
    """

    RETRY_ON: ClassVar[tuple[type[BaseException], ...]] = ()
    RETRY_ATTEMPTS: ClassVar[int | None] = None

    _context: AdapterContext

    @classmethod
    def create_adapter(cls) -> StorageAdapter:
        """Return a ready-to-use adapter for the backend under test."""
        raise NotImplementedError(f"{cls.__name__} must implement create_adapter()")

    # ===========================================================================
    #                               Fixtures
    # ===========================================================================

    @pytest.fixture(scope="class")
    def _storecheck_context(self, request: pytest.FixtureRequest) -> Iterator[AdapterContext]:
        context = AdapterContext(request.cls.create_adapter)
        yield context
        context.teardown()

    @pytest.fixture(autouse=True)
    def _storecheck_lifecycle(
        self, request: pytest.FixtureRequest, _storecheck_context: AdapterContext
    ) -> Iterator[None]:
        self._context = _storecheck_context
        try:
            _storecheck_context.begin_scenario()
        except StorageUnavailableError as e:
            pytest.skip(f"storage adapter unavailable: {e}")
        logger.debug("scenario %s started", request.node.name)
        yield
        _storecheck_context.end_scenario()

    # ===========================================================================
    #                            Helper surface
    # ===========================================================================

    @property
    def adapter(self) -> StorageAdapter:
        """The adapter under test, created on first access."""
        return self._context.get()

    def use_adapter(self, adapter: StorageAdapter) -> StorageAdapter:
        """Use `adapter` for the rest of the current scenario only."""
        return self._context.use(adapter)

    def clear_storage(self) -> None:
        """Delete every top-level entry from the adapter under test."""
        self._context.clear_storage()

    def run_scenario(self, fn: Callable[[], T]) -> T:
        """Run `fn` with the class's retry policy."""
        attempts = self.RETRY_ATTEMPTS or get_retry_attempts()
        return retry_call(fn, self.RETRY_ON, attempts)

    def given_we_have_an_existing_file(
        self,
        path: str,
        contents: bytes = b"contents",
        visibility: Visibility | None = None,
    ) -> None:
        """Write a fixture file that the scenario relies on."""
        self.run_scenario(
            lambda: self.adapter.write(path, contents, WriteOptions(visibility=visibility))
        )

    def assert_file_exists_at_path(self, path: str) -> None:
        def check() -> None:
            assert self.adapter.has(path), f"expected a file at {path!r}"

        self.run_scenario(check)

    @staticmethod
    def format_incorrect_listing_count(items: Sequence[Metadata]) -> str:
        """Describe a listing for assertion messages."""
        lines = "".join(f"- {item.path}\n" for item in items)
        return f"Incorrect number of items returned.\nThe listing contains:\n\n{lines}"

    @staticmethod
    def fixture_contents(name: str) -> bytes:
        """Return the bytes of a bundled fixture file, e.g. ``"logo.svg"``."""
        return resources.files(FIXTURES_PACKAGE).joinpath("files", name).read_bytes()

    def _assert_visibility(self, path: str, expected: Visibility) -> None:
        if not self.adapter.supports_visibility:
            return
        meta = self.adapter.get_visibility(path)
        assert meta is not None
        assert meta.visibility is expected

    # ===========================================================================
    #                            Writing & reading
    # ===========================================================================

    @scenario
    def test_writing_and_reading_with_bytes(self) -> None:
        adapter = self.adapter

        adapter.write("path.txt", b"contents")

        assert adapter.has("path.txt")
        result = adapter.read("path.txt")
        assert result is not None
        assert result.contents == b"contents"

    @scenario
    def test_writing_a_file_with_a_stream(self) -> None:
        adapter = self.adapter

        adapter.write_stream("path.txt", io.BytesIO(b"contents"))

        assert adapter.has("path.txt")

    @pytest.mark.parametrize("path", SPECIAL_PATHS)
    @scenario
    def test_writing_and_reading_files_with_special_path(self, path: str) -> None:
        adapter = self.adapter

        adapter.write(path, b"contents")

        result = adapter.read(path)
        assert result is not None
        assert result.contents == b"contents"

    @scenario
    def test_writing_a_file_with_an_empty_stream(self) -> None:
        adapter = self.adapter

        adapter.write_stream("path.txt", io.BytesIO(b""))

        assert adapter.has("path.txt")
        result = adapter.read("path.txt")
        assert result is not None
        assert result.contents == b""

    def test_reading_a_file(self) -> None:
        self.given_we_have_an_existing_file("path.txt", b"contents")

        def check() -> None:
            result = self.adapter.read("path.txt")
            assert result is not None
            assert result.contents == b"contents"

        self.run_scenario(check)

    def test_reading_a_file_with_a_stream(self) -> None:
        self.given_we_have_an_existing_file("path.txt", b"contents")

        def check() -> None:
            fs = self.adapter.read_stream("path.txt")
            assert fs is not None
            with fs:
                contents = fs.stream.read()
            assert fs.closed
            assert contents == b"contents"

        self.run_scenario(check)

    @scenario
    def test_overwriting_a_file(self) -> None:
        self.given_we_have_an_existing_file("path.txt", b"contents", Visibility.PUBLIC)
        adapter = self.adapter

        adapter.write("path.txt", b"new contents", WriteOptions(visibility=Visibility.PRIVATE))

        result = adapter.read("path.txt")
        assert result is not None
        assert result.contents == b"new contents"
        self._assert_visibility("path.txt", Visibility.PRIVATE)

    @scenario
    def test_writing_and_reading_with_streams(self) -> None:
        adapter = self.adapter
        write_stream = io.BytesIO(b"contents")

        adapter.write_stream("path.txt", write_stream)
        write_stream.close()

        fs = adapter.read_stream("path.txt")
        assert fs is not None
        with fs:
            assert fs.stream.read() == b"contents"

    # ===========================================================================
    #                               Deleting
    # ===========================================================================

    @scenario
    def test_deleting_a_file(self) -> None:
        self.given_we_have_an_existing_file("path.txt")
        adapter = self.adapter

        assert adapter.delete("path.txt") is True

        assert not adapter.has("path.txt")

    def test_trying_to_delete_a_non_existing_file(self) -> None:
        adapter = self.adapter

        assert adapter.delete("path.txt") is False

        assert not adapter.has("path.txt")

    @scenario
    def test_deleting_a_directory_recursively(self) -> None:
        self.given_we_have_an_existing_file("dir/a.txt")
        self.given_we_have_an_existing_file("dir/sub/b.txt")
        adapter = self.adapter

        assert adapter.delete_dir("dir") is True

        assert not adapter.has("dir")
        assert not adapter.has("dir/a.txt")
        assert not adapter.has("dir/sub/b.txt")
        assert adapter.list_contents("", recursive=True) == []

    # ===========================================================================
    #                               Listing
    # ===========================================================================

    @scenario
    def test_listing_contents_shallow(self) -> None:
        self.given_we_have_an_existing_file("some/0-path.txt")
        self.given_we_have_an_existing_file("some/1-nested/path.txt")

        items = self.adapter.list_contents("some", recursive=False)

        assert len(items) == 2, self.format_incorrect_listing_count(items)
        # Order of entries is not guaranteed.
        by_kind = {item.kind: item for item in items}
        assert set(by_kind) == {EntryKind.FILE, EntryKind.DIRECTORY}
        assert by_kind[EntryKind.FILE].path == "some/0-path.txt"
        assert by_kind[EntryKind.DIRECTORY].path == "some/1-nested"

    @scenario
    def test_listing_contents_recursive(self) -> None:
        adapter = self.adapter
        adapter.create_dir("path")
        adapter.write("path/file.txt", b"string")
        adapter.write("file.txt", b"string")

        items = adapter.list_contents("", recursive=True)

        assert len(items) == 2, self.format_incorrect_listing_count(items)
        assert all(item.is_file for item in items), self.format_incorrect_listing_count(items)
        assert {item.path for item in items} == {"path/file.txt", "file.txt"}

    def test_listing_a_toplevel_directory(self) -> None:
        self.given_we_have_an_existing_file("path1.txt")
        self.given_we_have_an_existing_file("path2.txt")

        def check() -> None:
            items = self.adapter.list_contents("", recursive=True)
            assert len(items) == 2, self.format_incorrect_listing_count(items)

        self.run_scenario(check)

    # ===========================================================================
    #                               Metadata
    # ===========================================================================

    def test_fetching_file_size(self) -> None:
        self.given_we_have_an_existing_file("path.txt", b"contents")

        def check() -> None:
            meta = self.adapter.get_size("path.txt")
            assert meta is not None
            assert meta.size == len(b"contents")

        self.run_scenario(check)

    @scenario
    def test_fetching_file_size_of_a_directory(self) -> None:
        adapter = self.adapter
        adapter.create_dir("path")

        assert adapter.get_size("path/") is None

    @scenario
    def test_fetching_file_size_of_non_existing_file(self) -> None:
        assert self.adapter.get_size("non-existing-file.txt") is None

    @scenario
    def test_fetching_last_modified(self) -> None:
        adapter = self.adapter
        adapter.write("path.txt", b"contents")

        meta = adapter.get_timestamp("path.txt")

        assert meta is not None
        assert isinstance(meta.timestamp, int)
        now = time.time()
        assert now - TIMESTAMP_TOLERANCE < meta.timestamp < now + TIMESTAMP_TOLERANCE

    @scenario
    def test_fetching_last_modified_of_non_existing_file(self) -> None:
        assert self.adapter.get_timestamp("non-existing-file.txt") is None

    @scenario
    def test_fetching_metadata_of_a_file(self) -> None:
        self.given_we_have_an_existing_file("some/path.txt", b"contents")
        adapter = self.adapter

        meta = adapter.get_metadata("some/path.txt")
        assert meta is not None
        assert meta.is_file
        assert meta.path == "some/path.txt"
        assert meta.size == len(b"contents")

        directory = adapter.get_metadata("some")
        assert directory is not None
        assert directory.is_dir

    @scenario
    def test_fetching_metadata_of_a_missing_path(self) -> None:
        assert self.adapter.get_metadata("non-existing-file.txt") is None

    # ===========================================================================
    #                               Visibility
    # ===========================================================================

    @scenario
    def test_setting_visibility(self) -> None:
        self.given_we_have_an_existing_file("path.txt", b"contents", Visibility.PUBLIC)
        adapter = self.adapter

        if not adapter.supports_visibility:
            with pytest.raises(UnsupportedOperationError):
                adapter.get_visibility("path.txt")
            return

        self._assert_visibility("path.txt", Visibility.PUBLIC)
        updated = adapter.set_visibility("path.txt", Visibility.PRIVATE)
        assert updated is not None
        assert updated.visibility is Visibility.PRIVATE
        self._assert_visibility("path.txt", Visibility.PRIVATE)
        adapter.set_visibility("path.txt", Visibility.PUBLIC)
        self._assert_visibility("path.txt", Visibility.PUBLIC)

    @scenario
    def test_fetching_visibility_of_non_existing_file(self) -> None:
        adapter = self.adapter

        if not adapter.supports_visibility:
            with pytest.raises(UnsupportedOperationError):
                adapter.get_visibility("non-existing-file.txt")
            return

        assert adapter.get_visibility("non-existing-file.txt") is None

    @scenario
    def test_setting_visibility_on_a_file_that_does_not_exist(self) -> None:
        adapter = self.adapter

        if not adapter.supports_visibility:
            with pytest.raises(UnsupportedOperationError):
                adapter.set_visibility("path.txt", Visibility.PRIVATE)
            return

        assert adapter.set_visibility("path.txt", Visibility.PRIVATE) is None
        assert not adapter.has("path.txt")

    # ===========================================================================
    #                               MIME types
    # ===========================================================================

    @scenario
    def test_fetching_the_mime_type_of_an_svg_file(self) -> None:
        self.given_we_have_an_existing_file("file.svg", self.fixture_contents("logo.svg"))

        meta = self.adapter.get_mimetype("file.svg")

        assert meta is not None
        assert meta.mimetype is not None
        assert meta.mimetype.startswith("image/svg")

    @scenario
    def test_fetching_mime_type_of_non_existing_file(self) -> None:
        assert self.adapter.get_mimetype("non-existing-file.txt") is None

    def test_fetching_unknown_mime_type_of_a_file(self) -> None:
        self.given_we_have_an_existing_file(
            "unknown-mime-type.md5", self.fixture_contents("unknown-mime-type.md5")
        )

        def check() -> None:
            assert self.adapter.get_mimetype("unknown-mime-type.md5") is None

        self.run_scenario(check)

    # ===========================================================================
    #                            Copying & moving
    # ===========================================================================

    def _copy_and_verify(self) -> None:
        adapter = self.adapter
        adapter.write(
            "source.txt", b"contents to be copied", WriteOptions(visibility=Visibility.PUBLIC)
        )

        assert adapter.copy("source.txt", "destination.txt") is True

        assert adapter.has("source.txt")
        assert adapter.has("destination.txt")
        result = adapter.read("destination.txt")
        assert result is not None
        assert result.contents == b"contents to be copied"
        self._assert_visibility("destination.txt", Visibility.PUBLIC)

    @scenario
    def test_copying_a_file(self) -> None:
        self._copy_and_verify()

    @scenario
    def test_copying_a_file_again(self) -> None:
        self._copy_and_verify()

    @scenario
    def test_copying_a_file_with_collision(self) -> None:
        adapter = self.adapter
        adapter.write("path.txt", b"new contents")
        adapter.write("new-path.txt", b"contents")

        adapter.copy("path.txt", "new-path.txt")

        result = adapter.read("new-path.txt")
        assert result is not None
        assert result.contents == b"new contents"

    @scenario
    def test_moving_a_file(self) -> None:
        adapter = self.adapter
        adapter.write(
            "source.txt", b"contents to be copied", WriteOptions(visibility=Visibility.PUBLIC)
        )

        assert adapter.rename("source.txt", "destination.txt") is True

        assert not adapter.has("source.txt"), (
            "After moving a file should no longer exist in the original location."
        )
        assert adapter.has("destination.txt"), (
            "After moving, a file should be present at the new location."
        )
        result = adapter.read("destination.txt")
        assert result is not None
        assert result.contents == b"contents to be copied"
        self._assert_visibility("destination.txt", Visibility.PUBLIC)

    @scenario
    def test_moving_a_file_that_does_not_exist(self) -> None:
        adapter = self.adapter

        assert adapter.rename("source.txt", "destination.txt") is False

        assert not adapter.has("destination.txt")

    # ===========================================================================
    #                        Missing files & existence
    # ===========================================================================

    @scenario
    def test_reading_a_file_that_does_not_exist(self) -> None:
        assert self.adapter.read("path.txt") is None

    def test_failing_to_read_a_non_existing_file_into_a_stream(self) -> None:
        assert self.adapter.read_stream("something.txt") is None

    def test_failing_to_read_a_non_existing_file(self) -> None:
        assert self.adapter.read("something.txt") is None

    def test_checking_if_files_exist(self) -> None:
        adapter = self.adapter

        exists_before = adapter.has("some/path.txt")
        adapter.write("some/path.txt", b"contents")

        assert exists_before is False
        self.assert_file_exists_at_path("some/path.txt")

    # ===========================================================================
    #                               Directories
    # ===========================================================================

    @scenario
    def test_creating_a_directory(self) -> None:
        adapter = self.adapter

        adapter.create_dir("path")
        # Creating a directory is idempotent.
        adapter.create_dir("path")

        items = adapter.list_contents("", recursive=False)
        assert len(items) == 1, self.format_incorrect_listing_count(items)
        assert items[0].path == "path"
        assert items[0].is_dir
