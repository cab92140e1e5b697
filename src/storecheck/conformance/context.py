"""Adapter lifecycle for a conformance test class.

`AdapterContext` owns the adapter shared by the scenarios of one test class.
It creates the adapter lazily through the class's factory, memoizes it, and
empties the backing store around every scenario.

States
------
    UNINITIALIZED --get()--> ADAPTER_READY --begin_scenario()--> SCENARIO_RUNNING
    SCENARIO_RUNNING --end_scenario()--> CLEANUP --> ADAPTER_READY
                                                 \\-> UNINITIALIZED (custom adapter dropped)
    any --teardown()--> TORN_DOWN

A scenario may install its own adapter with `use()`. That adapter replaces the
memoized one for the rest of the scenario only: cleanup empties it and then
forgets it, so the next scenario builds a fresh adapter from the factory.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from storecheck.interfaces.storage import StorageAdapter

__all__ = ["AdapterContext", "AdapterFactory", "ContextTornDownError", "LifecycleState"]

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[], StorageAdapter]


class LifecycleState(str, Enum):
    """Where an `AdapterContext` is in its lifecycle."""

    UNINITIALIZED = "uninitialized"
    ADAPTER_READY = "adapter_ready"
    SCENARIO_RUNNING = "scenario_running"
    CLEANUP = "cleanup"
    TORN_DOWN = "torn_down"


class ContextTornDownError(RuntimeError):
    """Raised when a torn-down context is asked for an adapter."""


class AdapterContext:
    """Lazily created, memoized adapter plus the cleanup around scenarios."""

    def __init__(self, factory: AdapterFactory) -> None:
        self._factory = factory
        self._adapter: StorageAdapter | None = None
        self._custom = False
        self.state = LifecycleState.UNINITIALIZED

    @property
    def is_custom(self) -> bool:
        """True while a scenario-installed adapter is in use."""
        return self._custom

    @property
    def has_adapter(self) -> bool:
        """True once an adapter has been created or installed."""
        return self._adapter is not None

    def get(self) -> StorageAdapter:
        """Return the memoized adapter, creating it on first use.

        Raises:
            ContextTornDownError: If the context has been torn down.
            Exception: Whatever the factory raises; nothing is memoized then.
        """
        if self.state is LifecycleState.TORN_DOWN:
            raise ContextTornDownError("adapter context has been torn down")
        if self._adapter is None:
            self._adapter = self._factory()
            logger.debug("created adapter %s", type(self._adapter).__name__)
            if self.state is LifecycleState.UNINITIALIZED:
                self.state = LifecycleState.ADAPTER_READY
        return self._adapter

    def use(self, adapter: StorageAdapter) -> StorageAdapter:
        """Install `adapter` for the current scenario and return it."""
        self._adapter = adapter
        self._custom = True
        logger.debug("using custom adapter %s", type(adapter).__name__)
        return adapter

    def begin_scenario(self) -> StorageAdapter:
        """Make the adapter available and start from an empty store.

        Construction faults propagate so the caller can decide whether to skip.
        """
        adapter = self.get()
        self.clear_storage()
        self.state = LifecycleState.SCENARIO_RUNNING
        return adapter

    def end_scenario(self) -> None:
        """Empty the store and drop a scenario-installed adapter."""
        self.state = LifecycleState.CLEANUP
        try:
            self.clear_storage()
        finally:
            if self._custom:
                self._custom = False
                self._adapter = None
                logger.debug("custom adapter released")
            self.state = (
                LifecycleState.ADAPTER_READY
                if self._adapter is not None
                else LifecycleState.UNINITIALIZED
            )

    def clear_storage(self) -> None:
        """Delete every top-level entry.

        The root is listed shallowly; directories are removed with
        `delete_dir()` and files with `delete()`. If the adapter cannot be
        constructed the failure is logged and cleanup is skipped.
        """
        try:
            adapter = self.get()
        except Exception:  # pylint: disable=broad-exception-caught
            logger.warning("adapter construction failed; skipping cleanup", exc_info=True)
            return

        for item in adapter.list_contents("", recursive=False):
            if item.is_dir:
                adapter.delete_dir(item.path)
            else:
                adapter.delete(item.path)
            logger.debug("cleanup removed %s %r", item.kind.value, item.path)

    def teardown(self) -> None:
        """Forget the adapter; the context cannot be used afterwards."""
        self._adapter = None
        self._custom = False
        self.state = LifecycleState.TORN_DOWN
