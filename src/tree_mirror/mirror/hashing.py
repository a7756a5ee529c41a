"""Content identity compatible with git's blob object ids.

Git stores text with LF line endings, so local files checked out (or
edited) with CRLF/CR endings are normalised before hashing.  Binary
content is hashed byte-for-byte.  The digest is SHA-1 over
``b"blob <len>\\0" + content`` exactly as ``git hash-object`` computes it.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from ..errors import FilesystemError

# Same window git uses to sniff binary content.
TEXT_SNIFF_BYTES = 8192


def is_text_content(content: bytes) -> bool:
    """Return ``True`` when no NUL byte occurs in the first 8 KiB."""
    return b"\0" not in content[:TEXT_SNIFF_BYTES]


def normalize_line_endings(content: bytes) -> bytes:
    """Rewrite every CRLF and every standalone CR to LF."""
    return content.replace(b"\r\n", b"\n").replace(b"\r", b"\n")


def blob_hash(content: bytes) -> str:
    """Compute the git blob id of *content*.

    Args:
        content: Raw file bytes.

    Returns:
        Lowercase 40-character hex SHA-1 digest.
    """
    if is_text_content(content):
        content = normalize_line_endings(content)
    hasher = hashlib.sha1()
    hasher.update(b"blob %d\0" % len(content))
    hasher.update(content)
    return hasher.hexdigest()


def hash_file(path: Path) -> str:
    """Read *path* and return its blob id.

    Raises:
        FilesystemError: If the file cannot be read.
    """
    try:
        content = path.read_bytes()
    except OSError as exc:
        raise FilesystemError(
            f"Failed to read {path}: {exc}", path=str(path)
        ) from exc
    return blob_hash(content)
