"""Removal of empty directories and OS metadata junk after a sync."""

from __future__ import annotations

import logging
from pathlib import Path

from .paths import DEFAULT_RESERVED_DIR, HIDDEN_MARKER
from .progress import ProgressEmitter

logger = logging.getLogger(__name__)

# Matched case-insensitively, in addition to any hidden file.
JUNK_FILE_NAMES = frozenset({"thumbs.db", "desktop.ini", "ehthumbs.db"})


def is_junk(name: str) -> bool:
    """True for hidden files and known OS metadata files."""
    return name.startswith(HIDDEN_MARKER) or name.lower() in JUNK_FILE_NAMES


class DirectoryCompactor:
    """Prune directories left empty by deletes and renames.

    The mirror root itself is never removed. Hidden directories (such as
    the state directory) and the reserved directory are left alone.
    Errors on individual entries are logged and reported as ``cleanup``
    progress events; they never abort compaction.

    Args:
        reserved_dir: Name of the user-customisations directory.
        progress: Progress emitter for error reports.
    """

    def __init__(
        self,
        reserved_dir: str = DEFAULT_RESERVED_DIR,
        progress: ProgressEmitter | None = None,
    ) -> None:
        self.reserved_dir = reserved_dir
        self.progress = progress or ProgressEmitter()

    def compact(self, mirror_root: Path) -> int:
        """Compact every subdirectory of *mirror_root*.

        Returns:
            Number of directories removed.
        """
        if not mirror_root.is_dir():
            return 0
        removed = 0
        for child in self._subdirectories(mirror_root):
            removed += self._compact_dir(child)
        if removed:
            logger.info("Removed %d empty directories", removed)
        return removed

    def _compact_dir(self, directory: Path) -> int:
        removed = 0
        for child in self._subdirectories(directory):
            removed += self._compact_dir(child)

        try:
            entries = list(directory.iterdir())
        except OSError as exc:
            self._report(f"Cannot list {directory}: {exc}")
            return removed

        remaining = 0
        for entry in entries:
            if entry.is_dir() and not entry.is_symlink():
                remaining += 1
            elif is_junk(entry.name):
                try:
                    entry.unlink()
                    logger.debug("Removed junk file %s", entry)
                except OSError as exc:
                    self._report(f"Cannot remove {entry}: {exc}")
                    remaining += 1
            else:
                remaining += 1

        if remaining:
            return removed
        try:
            directory.rmdir()
        except OSError as exc:
            self._report(f"Cannot remove directory {directory}: {exc}")
            return removed
        logger.debug("Removed empty directory %s", directory)
        return removed + 1

    def _subdirectories(self, directory: Path) -> list[Path]:
        try:
            children = sorted(directory.iterdir())
        except OSError as exc:
            self._report(f"Cannot list {directory}: {exc}")
            return []
        return [
            child
            for child in children
            if child.is_dir()
            and not child.is_symlink()
            and not child.name.startswith(HIDDEN_MARKER)
            and child.name != self.reserved_dir
        ]

    def _report(self, message: str) -> None:
        logger.warning(message)
        self.progress.emit("cleanup", message)
