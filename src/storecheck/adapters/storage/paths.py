"""Path helpers shared by the storage adapters.

All adapters address entries with the same normalized form: forward slashes
only, no leading/trailing or repeated slashes, ``.`` and ``..`` resolved, and
the empty string standing for the storage root. No character other than the
separator has special meaning, so brackets, braces and spaces survive
unaltered.
"""

from __future__ import annotations

from collections.abc import Iterator

from storecheck.interfaces.errors import PathTraversalError

SEPARATOR = "/"
ROOT = ""


def normalize_path(path: str) -> str:
    """Return the normalized form of `path`.

    Raises:
        PathTraversalError: If ``..`` segments climb above the root.
    """
    parts: list[str] = []
    for segment in path.replace("\\", SEPARATOR).split(SEPARATOR):
        match segment:
            case "" | ".":
                continue
            case "..":
                if not parts:
                    raise PathTraversalError(path)
                parts.pop()
            case _:
                parts.append(segment)
    return SEPARATOR.join(parts)


def join(*parts: str) -> str:
    """Join path fragments and normalize the result."""
    return normalize_path(SEPARATOR.join(p for p in parts if p))


def parent_of(path: str) -> str:
    """Return the parent directory of a normalized path (root for top-level)."""
    head, _, _ = path.rpartition(SEPARATOR)
    return head


def basename(path: str) -> str:
    """Return the final segment of a normalized path."""
    return path.rpartition(SEPARATOR)[2]


def ancestors(path: str) -> Iterator[str]:
    """Yield every ancestor directory of a normalized path, nearest root first.

    The root itself is not yielded.

    Example:
        list(ancestors("a/b/c.txt")) == ["a", "a/b"]
    """
    parts = path.split(SEPARATOR)[:-1]
    for i in range(1, len(parts) + 1):
        yield SEPARATOR.join(parts[:i])


def is_within(path: str, directory: str) -> bool:
    """Return True if `path` is a strict descendant of `directory`."""
    if directory == ROOT:
        return path != ROOT
    return path.startswith(directory + SEPARATOR)


def is_child(path: str, directory: str) -> bool:
    """Return True if `path` is an immediate child of `directory`."""
    return is_within(path, directory) and parent_of(path) == directory


def rebase(path: str, source: str, destination: str) -> str:
    """Move `path` from under `source` to under `destination`.

    `path` must equal `source` or be one of its descendants.
    """
    if path == source:
        return destination
    return join(destination, path[len(source) + 1 :])
