"""Polyfill for adapters without a visibility concept.

Mix `NotSupportingVisibility` into an adapter (before `StorageAdapter` in the
bases) to declare the visibility capability unsupported. Both visibility
operations then raise `UnsupportedOperationError`, whether or not the path
exists, instead of silently doing nothing.
"""

from __future__ import annotations

from storecheck.interfaces.errors import UnsupportedOperationError
from storecheck.interfaces.storage import Metadata, Visibility

__all__ = ["NotSupportingVisibility"]


class NotSupportingVisibility:
    """Mixin that declares the visibility capability unsupported."""

    @property
    def supports_visibility(self) -> bool:
        return False

    def get_visibility(self, path: str) -> Metadata | None:
        raise UnsupportedOperationError("get_visibility", type(self).__name__)

    def set_visibility(self, path: str, visibility: Visibility) -> Metadata | None:
        raise UnsupportedOperationError("set_visibility", type(self).__name__)
