"""Backend-agnostic MIME type detection.

Detection looks at the first bytes of the content, then at the file name:

1. libmagic (through ``python-magic``) classifies the content. A specific
   answer such as ``image/png`` or ``image/svg+xml`` wins.
2. A generic text answer (``text/plain``, ``text/xml``) is refined by the
   extension, looked up in a private `mimetypes.MimeTypes` table seeded only
   with Python's built-in defaults, so results do not depend on the host's
   ``/etc/mime.types``. Without a usable extension the text answer stands.
3. When libmagic has no answer (``application/octet-stream``, empty content)
   the extension alone decides; otherwise the type is unknown and
   `detect_mimetype()` returns ``None``. Generic fallbacks such as
   ``application/octet-stream`` are never reported.
"""

from __future__ import annotations

import mimetypes

import magic

__all__ = ["HEAD_SIZE", "detect_mimetype"]

#: Number of leading bytes adapters should pass for content sniffing.
HEAD_SIZE = 2048

# libmagic's answers that say nothing about the content.
_UNKNOWN_TYPES = frozenset(
    {"application/octet-stream", "application/x-empty", "inode/x-empty", ""}
)

# Answers that a file name may refine, e.g. text/xml -> image/svg+xml.
_GENERIC_TEXT_TYPES = frozenset({"text/plain", "text/xml", "application/xml"})

_TYPES = mimetypes.MimeTypes()


def _from_name(path: str) -> str | None:
    guessed, _ = _TYPES.guess_type(path, strict=False)
    return None if guessed in _UNKNOWN_TYPES else guessed


def detect_mimetype(path: str, head: bytes = b"") -> str | None:
    """Return the MIME type of a file, or None if it cannot be determined.

    Args:
        path: File path; only its name is consulted.
        head: Leading bytes of the content (up to `HEAD_SIZE` are used).

    Returns:
        str | None: The detected type, e.g. ``"image/svg+xml"``.
    """
    sniffed = magic.from_buffer(head[:HEAD_SIZE], mime=True) if head else ""
    if sniffed in _UNKNOWN_TYPES:
        return _from_name(path)
    if sniffed in _GENERIC_TEXT_TYPES:
        return _from_name(path) or sniffed
    return sniffed
