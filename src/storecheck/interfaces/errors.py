"""Errors raised by storage adapters.

Absence is never an error: read-type queries return ``None`` and delete-type
mutations return ``False`` for missing paths. The classes below cover the
remaining faults an adapter may signal.
"""


class StorageError(Exception):
    """Base class for all storage adapter errors."""


class UnsupportedOperationError(StorageError):
    """Raised when an operation outside the adapter's capability set is invoked.

    Attributes:
        operation: Name of the rejected operation (e.g. ``"get_visibility"``).
        adapter: Class name of the adapter that rejected it.
    """

    def __init__(self, operation: str, adapter: str) -> None:
        super().__init__(f"{adapter} does not support {operation}()")
        self.operation = operation
        self.adapter = adapter


class PathTraversalError(StorageError):
    """Raised when a path resolves outside of the storage root."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Path is outside of the storage root: {path!r}")
        self.path = path


class PathConflictError(StorageError):
    """Raised when a file and a directory would occupy the same path."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Path conflict at {path!r}: {reason}")
        self.path = path
        self.reason = reason


class StorageUnavailableError(StorageError):
    """Raised when the backing store cannot be reached or constructed."""
