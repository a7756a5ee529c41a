"""Incremental reconciliation: apply a remote change set directly.

Each change is applied against the mirror without building a manifest.
The local overlay state of every touched path is preserved: a disabled
file that changes upstream is re-downloaded disabled, and a disabled file
that is renamed upstream stays disabled under its new name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import TruncatedResultError
from .changes import COMPARE_FILE_LIMIT
from .executor import SyncExecutor
from .hashing import hash_file
from .models import Change, ChangeKind, ChangeSet, Overlay, SyncMode, SyncResult
from .paths import DEFAULT_RESERVED_DIR, actual_path, is_excluded, strip_subtree
from .progress import ProgressEmitter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _WorkItem:
    """A change re-expressed relative to the mirrored subtree."""

    kind: ChangeKind
    path: str
    previous_path: str | None
    change: Change


class IncrementalReconciler:
    """Apply a ``ChangeSet`` to the mirror owned by *executor*.

    Args:
        executor: Performs downloads, deletes and moves in the mirror.
        subtree: Repository subtree the mirror tracks (``""`` for root).
        reserved_dir: Name of the user-customisations directory.
        progress: Progress emitter.
    """

    def __init__(
        self,
        executor: SyncExecutor,
        subtree: str = "",
        reserved_dir: str = DEFAULT_RESERVED_DIR,
        progress: ProgressEmitter | None = None,
    ) -> None:
        self.executor = executor
        self.subtree = subtree.strip("/")
        self.reserved_dir = reserved_dir
        self.progress = progress or ProgressEmitter()

    def reconcile(self, change_set: ChangeSet) -> SyncResult:
        """Apply every relevant change of *change_set*.

        Returns:
            Counts of applied operations and ``change_set.head_revision``.

        Raises:
            TruncatedResultError: If the change set is truncated; the
                caller must run a full sync instead.
            NetworkError: If a download fails.
            FilesystemError: If a local write, move or delete fails.
        """
        if change_set.truncated:
            raise TruncatedResultError(
                len(change_set.changes), COMPARE_FILE_LIMIT
            )

        items = self.relevant_items(change_set.changes)
        total = len(items)
        self.progress.emit("comparing", f"Found {total} changed files")

        revision = change_set.head_revision
        downloaded = deleted = renamed = skipped = 0

        for index, item in enumerate(items, start=1):
            self.progress.emit(
                "syncing",
                f"[{item.change.status or item.kind.value}] {item.path}",
                index,
                total,
            )

            if item.kind in (ChangeKind.ADDED, ChangeKind.MODIFIED):
                self._download_preserving(item.path, revision)
                downloaded += 1

            elif item.kind == ChangeKind.REMOVED:
                found = self.executor.find_local(item.path)
                if found is not None and self.executor.delete(found[0]):
                    deleted += 1

            elif item.kind == ChangeKind.RENAMED:
                moved, refreshed = self._rename(item, revision)
                renamed += moved
                downloaded += refreshed

            else:
                logger.info(
                    "Skipping %s with unrecognised status '%s'",
                    item.path,
                    item.change.status,
                )
                skipped += 1

        return SyncResult(
            files_downloaded=downloaded,
            files_deleted=deleted,
            files_renamed=renamed,
            files_skipped=skipped,
            new_revision=revision,
            mode=SyncMode.INCREMENTAL,
        )

    def relevant_items(self, changes: list[Change]) -> list[_WorkItem]:
        """Keep changes inside the subtree and outside exclusions.

        Renames crossing the subtree boundary are rewritten: moving out
        becomes a removal of the old path, moving in an addition.
        """
        items: list[_WorkItem] = []
        for change in changes:
            path = self._relative(change.path)
            previous = (
                self._relative(change.previous_path)
                if change.previous_path
                else None
            )

            if change.kind == ChangeKind.RENAMED:
                if path is None and previous is not None:
                    items.append(
                        _WorkItem(ChangeKind.REMOVED, previous, None, change)
                    )
                elif path is not None and previous is None:
                    items.append(
                        _WorkItem(ChangeKind.ADDED, path, None, change)
                    )
                elif path is not None:
                    items.append(
                        _WorkItem(ChangeKind.RENAMED, path, previous, change)
                    )
                continue

            if path is not None:
                items.append(_WorkItem(change.kind, path, None, change))
        return items

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _relative(self, repo_path: str) -> str | None:
        """Subtree-relative path, or ``None`` if outside or excluded."""
        relative = strip_subtree(repo_path, self.subtree)
        if relative is None or is_excluded(relative, self.reserved_dir):
            return None
        return relative

    def _download_preserving(self, path: str, revision: str) -> None:
        found = self.executor.find_local(path)
        overlay = found[1] if found is not None else Overlay.ENABLED
        self.executor.download(path, overlay, revision)

    def _rename(self, item: _WorkItem, revision: str) -> tuple[int, int]:
        """Move the old file, or download the new one if it is missing.

        Returns:
            ``(renamed, downloaded)`` increments.
        """
        found = (
            self.executor.find_local(item.previous_path)
            if item.previous_path is not None
            else None
        )
        if found is None:
            self._download_preserving(item.path, revision)
            return 0, 1

        old_actual, overlay = found
        dest = self.executor.move(old_actual, actual_path(item.path, overlay))

        expected = item.change.content_hash
        if expected and hash_file(dest) != expected:
            logger.debug(
                "Content of %s changed with the rename, re-downloading",
                item.path,
            )
            self.executor.download(item.path, overlay, revision)
            return 1, 1
        return 1, 0
