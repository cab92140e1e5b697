"""Functional tests that run the conformance suite in a pytest sub-session.

Scope
-----
End-to-end verification of `StorageAdapterConformance` as a backend author
would use it: a ``conftest.py`` enabling the plugin and a ``Test*`` class with
a `create_adapter()` factory, executed through ``pytester``.

What these tests assert
-----------------------
* A correct adapter passes every scenario.
* A factory raising `StorageUnavailableError` skips every scenario with the
  error as the reason; any other factory fault errors them.
* A deliberately broken adapter fails exactly the scenario that checks the
  broken behavior.
* ``RETRY_ON`` turns transient faults into passes.
* A scenario-installed adapter lasts for that scenario only.
* The ``--storecheck-log-*`` options route harness logs to a flight-recorder
  file.
"""

from __future__ import annotations

import pytest

# One run of the suite: 37 scenarios, one of them parametrized over 14 paths.
SCENARIO_COUNT = 50

CONFTEST = 'pytest_plugins = ["storecheck.conformance.plugin"]'

# pylint: disable=redefined-outer-name


@pytest.fixture
def suite_dir(pytester: pytest.Pytester) -> pytest.Pytester:
    """Pytester directory with the storecheck plugin enabled."""
    pytester.makeconftest(CONFTEST)
    return pytester


def test_reference_adapter_passes_everything(suite_dir: pytest.Pytester):
    suite_dir.makepyfile(
        test_memory="""
        from storecheck.adapters.storage import InMemoryStorageAdapter
        from storecheck.conformance import StorageAdapterConformance

        class TestMemory(StorageAdapterConformance):
            @classmethod
            def create_adapter(cls):
                return InMemoryStorageAdapter()
        """
    )

    result = suite_dir.runpytest()

    result.assert_outcomes(passed=SCENARIO_COUNT)


def test_unavailable_backend_skips_every_scenario(suite_dir: pytest.Pytester):
    suite_dir.makepyfile(
        test_unavailable="""
        from storecheck.conformance import StorageAdapterConformance
        from storecheck.interfaces.errors import StorageUnavailableError

        class TestUnavailable(StorageAdapterConformance):
            @classmethod
            def create_adapter(cls):
                raise StorageUnavailableError("bucket unreachable")
        """
    )

    result = suite_dir.runpytest("-rs")

    result.assert_outcomes(skipped=SCENARIO_COUNT)
    result.stdout.fnmatch_lines(["*storage adapter unavailable: bucket unreachable*"])


def test_misconfigured_factory_errors_every_scenario(suite_dir: pytest.Pytester):
    suite_dir.makepyfile(
        test_misconfigured="""
        from storecheck.conformance import StorageAdapterConformance

        class TestMisconfigured(StorageAdapterConformance):
            @classmethod
            def create_adapter(cls):
                raise RuntimeError("missing credentials")
        """
    )

    result = suite_dir.runpytest()

    result.assert_outcomes(errors=SCENARIO_COUNT)


def test_missing_factory_is_reported(suite_dir: pytest.Pytester):
    suite_dir.makepyfile(
        test_no_factory="""
        from storecheck.conformance import StorageAdapterConformance

        class TestNoFactory(StorageAdapterConformance):
            pass
        """
    )

    result = suite_dir.runpytest("-x")

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines(["*TestNoFactory must implement create_adapter()*"])


def test_broken_recursive_listing_is_caught(suite_dir: pytest.Pytester):
    suite_dir.makepyfile(
        test_broken="""
        from storecheck.adapters.storage import InMemoryStorageAdapter
        from storecheck.conformance import StorageAdapterConformance

        class ListsDirectoriesRecursively(InMemoryStorageAdapter):
            def list_contents(self, directory="", recursive=False):
                if not recursive:
                    return super().list_contents(directory)
                items = []
                for entry in super().list_contents(directory):
                    items.append(entry)
                    if entry.is_dir:
                        items.extend(self.list_contents(entry.path, recursive=True))
                return items

        class TestBroken(StorageAdapterConformance):
            @classmethod
            def create_adapter(cls):
                return ListsDirectoriesRecursively()
        """
    )

    result = suite_dir.runpytest("-rf")

    result.assert_outcomes(passed=SCENARIO_COUNT - 1, failed=1)
    result.stdout.fnmatch_lines(["FAILED *::TestBroken::test_listing_contents_recursive*"])
    result.stdout.fnmatch_lines(["*Incorrect number of items returned*"])


FLAKY_COPY = """
from storecheck.adapters.storage import InMemoryStorageAdapter
from storecheck.conformance import StorageAdapterConformance

class FlakyCopy(InMemoryStorageAdapter):
    def __init__(self):
        super().__init__()
        self.copies = 0

    def copy(self, source, destination):
        self.copies += 1
        if self.copies % 2:
            raise ConnectionError("connection reset")
        return super().copy(source, destination)

class TestFlaky(StorageAdapterConformance):
    RETRY_ON = {retry_on}

    @classmethod
    def create_adapter(cls):
        return FlakyCopy()
"""


def test_retry_on_absorbs_transient_faults(suite_dir: pytest.Pytester):
    suite_dir.makepyfile(test_flaky=FLAKY_COPY.format(retry_on="(ConnectionError,)"))

    result = suite_dir.runpytest()

    result.assert_outcomes(passed=SCENARIO_COUNT)


def test_without_retry_transient_faults_fail(suite_dir: pytest.Pytester):
    suite_dir.makepyfile(test_flaky=FLAKY_COPY.format(retry_on="()"))

    result = suite_dir.runpytest("-rf")

    # Odd-numbered copy calls fail: the first and third copying scenarios.
    result.assert_outcomes(passed=SCENARIO_COUNT - 2, failed=2)
    result.stdout.fnmatch_lines(
        [
            "FAILED *::TestFlaky::test_copying_a_file*",
            "FAILED *::TestFlaky::test_copying_a_file_with_collision*",
        ]
    )
    result.stdout.fnmatch_lines(["*ConnectionError: connection reset*"])


def test_custom_adapter_lasts_one_scenario(suite_dir: pytest.Pytester):
    suite_dir.makepyfile(
        test_custom="""
        from storecheck.adapters.storage import InMemoryStorageAdapter
        from storecheck.conformance import StorageAdapterConformance

        class TestCustom(StorageAdapterConformance):
            created = []
            custom = []

            @classmethod
            def create_adapter(cls):
                adapter = InMemoryStorageAdapter()
                cls.created.append(adapter)
                return adapter

            def test_custom_first(self):
                custom = self.use_adapter(InMemoryStorageAdapter())
                custom.write("left-behind.txt", b"x")
                assert self.adapter is custom
                type(self).custom.append(custom)

            def test_custom_second(self):
                (custom,) = type(self).custom
                assert self.adapter is not custom
                assert not custom.has("left-behind.txt")
                assert len(type(self).created) == 2
        """
    )

    result = suite_dir.runpytest("-k", "test_custom_first or test_custom_second")

    result.assert_outcomes(passed=2)


def test_flight_recorder_option_writes_harness_logs(suite_dir: pytest.Pytester):
    suite_dir.makepyfile(
        test_memory="""
        from storecheck.adapters.storage import InMemoryStorageAdapter
        from storecheck.conformance import StorageAdapterConformance

        class TestMemory(StorageAdapterConformance):
            @classmethod
            def create_adapter(cls):
                return InMemoryStorageAdapter()
        """
    )
    log_path = suite_dir.path / "flight.log"

    result = suite_dir.runpytest(
        "--storecheck-log-level=WARNING",
        f"--storecheck-log-path={log_path}",
        "-k",
        "creating_a_directory",
    )

    result.assert_outcomes(passed=1)
    text = log_path.read_text(encoding="utf-8")
    assert "storecheck" in text
    assert "created adapter InMemoryStorageAdapter" in text
