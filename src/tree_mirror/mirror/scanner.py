"""Local mirror scanner.

Walks the mirror directory and produces one ``LocalRecord`` per retained
file, keyed by canonical path.  Hidden entries are never entered or
hashed; excluded paths (hidden components, the reserved customisations
directory) are dropped.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..errors import FilesystemError, MirrorNotFoundError
from .hashing import hash_file
from .models import LocalRecord, Overlay
from .paths import (
    DEFAULT_RESERVED_DIR,
    HIDDEN_MARKER,
    enabled_path,
    is_excluded,
)

logger = logging.getLogger(__name__)


class LocalMirrorScanner:
    """Build the canonical-path -> local record map of a mirror.

    Args:
        reserved_dir: Name of the user-customisations directory.
    """

    def __init__(self, reserved_dir: str = DEFAULT_RESERVED_DIR) -> None:
        self.reserved_dir = reserved_dir

    def scan(self, mirror_root: Path) -> list[LocalRecord]:
        """Scan *mirror_root* recursively.

        Returns:
            Records sorted by canonical path.

        Raises:
            MirrorNotFoundError: If *mirror_root* is not a directory.
            FilesystemError: If a directory or file cannot be read.
        """
        return sorted(
            self.scan_map(mirror_root).values(),
            key=lambda r: r.canonical_path,
        )

    def scan_map(self, mirror_root: Path) -> dict[str, LocalRecord]:
        """Scan *mirror_root* and index the records by canonical path."""
        if not mirror_root.is_dir():
            raise MirrorNotFoundError(str(mirror_root))

        records: dict[str, LocalRecord] = {}
        for relative, path in self._walk(mirror_root):
            if is_excluded(relative, self.reserved_dir):
                continue

            canonical = enabled_path(relative)
            overlay = Overlay.DISABLED if canonical else Overlay.ENABLED
            record = LocalRecord(
                canonical_path=canonical or relative,
                actual_path=relative,
                content_hash=hash_file(path),
                overlay=overlay,
            )

            existing = records.get(record.canonical_path)
            if existing is not None:
                logger.info(
                    "Both '%s' and '%s' exist; using the enabled file",
                    existing.actual_path,
                    record.actual_path,
                )
                if existing.overlay == Overlay.ENABLED:
                    continue
            records[record.canonical_path] = record

        logger.debug(
            "Scanned %s: %d files", mirror_root, len(records)
        )
        return records

    def _walk(self, root: Path):
        """Yield ``(relative_posix_path, path)`` for every regular file."""
        stack = [root]
        while stack:
            directory = stack.pop()
            try:
                entries = sorted(directory.iterdir())
            except OSError as exc:
                raise FilesystemError(
                    f"Failed to read directory {directory}: {exc}",
                    path=str(directory),
                ) from exc

            for entry in entries:
                if entry.name.startswith(HIDDEN_MARKER):
                    continue
                if entry.is_dir():
                    if not entry.is_symlink():
                        stack.append(entry)
                elif entry.is_file():
                    yield entry.relative_to(root).as_posix(), entry
