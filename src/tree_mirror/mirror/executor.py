"""Filesystem side of a sync: downloads, deletes and renames.

Every mutation of the mirror goes through ``SyncExecutor``:

* Downloads create parent directories, write to a hidden temporary
  sibling and ``os.replace`` it over the target, so an interrupted run
  never leaves a half-written file at a real path.
* A failed download aborts the whole run and surfaces the transport
  error.
* Deleting a file must succeed; removing the now-empty parent directory
  afterwards is best-effort.
* Paths that would resolve outside the mirror root are refused with
  ``FilesystemError`` before any I/O.
"""

from __future__ import annotations

import logging
import os
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import FilesystemError
from .models import Overlay, PlannedDownload, SyncPlan
from .paths import actual_path, disabled_path
from .progress import ProgressEmitter

if TYPE_CHECKING:
    from ..core.client import GitHubClient

logger = logging.getLogger(__name__)


class SyncExecutor:
    """Apply file operations against one mirror root.

    Args:
        client: Remote API client used for raw downloads.
        mirror_root: Local mirror directory.
        progress: Progress emitter for per-item notifications.
        max_parallel: Concurrent downloads; ``1`` downloads sequentially.
    """

    def __init__(
        self,
        client: GitHubClient,
        mirror_root: Path,
        progress: ProgressEmitter | None = None,
        max_parallel: int = 1,
    ) -> None:
        self.client = client
        self.mirror_root = mirror_root
        self.progress = progress or ProgressEmitter()
        self.max_parallel = max(1, max_parallel)

    # ------------------------------------------------------------------
    # Plan application
    # ------------------------------------------------------------------

    def apply(
        self,
        plan: SyncPlan,
        revision: str,
        stage: str | None = None,
    ) -> tuple[int, int]:
        """Apply all downloads, then all deletes, of *plan*.

        Args:
            plan: The plan to apply.
            revision: Remote revision to download file content from.
            stage: Progress stage override (defaults to ``downloading``
                and ``deleting``).

        Returns:
            ``(downloaded, deleted)`` counts.

        Raises:
            NetworkError: If a download fails (remaining items are not
                attempted).
            FilesystemError: If a write or a file removal fails.
        """
        downloaded = self.download_all(
            plan.downloads, revision, stage or "downloading"
        )

        deleted = 0
        total = len(plan.deletes)
        for index, path in enumerate(plan.deletes, start=1):
            self.progress.emit(
                stage or "deleting", f"Deleting: {path}", index, total
            )
            if self.delete(path):
                deleted += 1

        return downloaded, deleted

    def download_all(
        self,
        items: list[PlannedDownload],
        revision: str,
        stage: str = "downloading",
    ) -> int:
        """Download *items*, sequentially or with bounded concurrency."""
        total = len(items)
        if self.max_parallel == 1 or total <= 1:
            for index, item in enumerate(items, start=1):
                self.progress.emit(
                    stage, f"Downloading: {item.path}", index, total
                )
                self.download(item.path, item.overlay, revision)
            return total

        done = 0
        with ThreadPoolExecutor(max_workers=self.max_parallel) as pool:
            futures = {
                pool.submit(
                    self.download, item.path, item.overlay, revision
                ): item
                for item in items
            }
            try:
                for future in as_completed(futures):
                    future.result()
                    done += 1
                    self.progress.emit(
                        stage,
                        f"Downloaded: {futures[future].path}",
                        done,
                        total,
                    )
            except BaseException:
                pool.shutdown(wait=True, cancel_futures=True)
                raise
        return done

    # ------------------------------------------------------------------
    # Single-file operations
    # ------------------------------------------------------------------

    def download(
        self, path: str, overlay: Overlay, revision: str
    ) -> Path:
        """Fetch canonical *path* at *revision* into its overlay location.

        Returns:
            The absolute destination path.
        """
        dest = self._inside_root(actual_path(path, overlay))
        content = self.client.download_raw(path, revision)
        self._write_atomic(dest, content)
        logger.debug("Wrote %s (%d bytes)", dest, len(content))
        return dest

    def delete(self, relative: str) -> bool:
        """Remove the file at actual path *relative*.

        Returns:
            ``False`` if the file did not exist.

        Raises:
            FilesystemError: If the removal fails.
        """
        target = self._inside_root(relative)
        if not target.exists():
            return False
        try:
            target.unlink()
        except OSError as exc:
            raise FilesystemError(
                f"Failed to delete {relative}: {exc}", path=relative
            ) from exc
        self.remove_empty_parent(target)
        return True

    def move(self, old_relative: str, new_relative: str) -> Path:
        """Rename a file inside the mirror, creating parents as needed."""
        source = self._inside_root(old_relative)
        dest = self._inside_root(new_relative)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            source.replace(dest)
        except OSError as exc:
            raise FilesystemError(
                f"Failed to rename {old_relative}: {exc}",
                path=old_relative,
            ) from exc
        self.remove_empty_parent(source)
        return dest

    def find_local(self, canonical: str) -> tuple[str, Overlay] | None:
        """Locate *canonical* in either overlay state.

        Returns:
            ``(actual_relative_path, overlay)`` or ``None``.  When both
            variants exist the enabled file wins.
        """
        if (self.mirror_root / canonical).is_file():
            return canonical, Overlay.ENABLED
        disabled = disabled_path(canonical)
        if (self.mirror_root / disabled).is_file():
            return disabled, Overlay.DISABLED
        return None

    def remove_empty_parent(self, path: Path) -> None:
        """Try to remove *path*'s parent directory; never raises."""
        parent = path.parent
        if parent == self.mirror_root:
            return
        try:
            parent.rmdir()
            logger.debug("Removed empty directory %s", parent)
        except OSError as exc:
            logger.debug("Kept directory %s: %s", parent, exc)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _inside_root(self, relative: str) -> Path:
        """Join *relative* to the root, refusing paths that leave it."""
        target = self.mirror_root / relative
        # The leaf itself may be a symlink; only its directory must resolve inside.
        parent = target.parent.resolve()
        if target.name in ("", ".", "..") or not parent.is_relative_to(
            self.mirror_root.resolve()
        ):
            raise FilesystemError(
                f"Refusing to touch {relative}: outside the mirror root",
                path=relative,
            )
        return target

    def _write_atomic(self, dest: Path, content: bytes) -> None:
        # Hidden temp name: ignored by the scanner, removed by the compactor.
        tmp_path = dest.parent / f".{dest.name}.{uuid.uuid4().hex}.part"
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "xb") as fh:
                fh.write(content)
            os.replace(tmp_path, dest)
        except OSError as exc:
            try:
                tmp_path.unlink()
            except OSError:
                logger.debug("No temporary file to clean up at %s", tmp_path)
            raise FilesystemError(
                f"Failed to write {dest}: {exc}", path=str(dest)
            ) from exc
