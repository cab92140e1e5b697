"""Global pytest configuration for storecheck.

Default marks
-------------
Every test gets a mark named after the top-level directory it lives in
(`unit`, `contract`, `integration`, `functional`) unless it already carries
that mark, so ``pytest -m unit`` selects the fast suite without per-file
boilerplate.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

# pylint: disable=unused-argument

pytest_plugins = [
    "pytester",
    "storecheck.conformance.plugin",
    "tests.fixtures.sqlite",
    "tests.fixtures.postgres",
]

TESTS_ROOT = Path(__file__).parent.resolve()
DEFAULT_MARKERS = ("unit", "contract", "integration", "functional")


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Add the default mark for the test's top-level directory."""
    for item in items:
        path = item.path.resolve()  # pytest>=8: pathlib.Path
        if TESTS_ROOT not in path.parents:
            continue
        top = path.relative_to(TESTS_ROOT).parts[0]
        if top not in DEFAULT_MARKERS:
            continue
        if not any(marker.name == top for marker in item.iter_markers()):
            item.add_marker(getattr(pytest.mark, top))


# Helper to route to an existing engine fixture by name
@pytest.fixture
def engine(request: pytest.FixtureRequest) -> Engine:
    """Indirection fixture to parametrize over engine-providing fixtures.

    Example:
        ```py
        @pytest.mark.parametrize("engine", ["sqlite_engine_memory", "postgres_engine"], indirect=True)
        def test_something(engine): ...
        ```
    """
    return request.getfixturevalue(request.param)
