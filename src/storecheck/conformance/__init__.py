"""Conformance suite for storage adapters.

Exports
-------
- StorageAdapterConformance: pytest base class; subclass it and implement
  `create_adapter()` to run every scenario against a backend.
- AdapterContext / LifecycleState: the memoized adapter and its lifecycle.
- retry_call: bounded retry used to run scenarios.
"""

from .context import AdapterContext, LifecycleState
from .retry import retry_call
from .suite import StorageAdapterConformance, scenario

__all__ = [
    "AdapterContext",
    "LifecycleState",
    "StorageAdapterConformance",
    "retry_call",
    "scenario",
]
