"""Reference storage adapters."""

from .local import LocalStorageAdapter
from .memory import InMemoryStorageAdapter
from .sqlalchemy_adapter import SqlAlchemyStorageAdapter

__all__ = [
    "InMemoryStorageAdapter",
    "LocalStorageAdapter",
    "SqlAlchemyStorageAdapter",
]
