"""Full-sync reconciliation: manifest vs. local mirror -> ``SyncPlan``.

Decision table for each canonical path:

=================  ==================  ==============================
Manifest           Local record        Action
=================  ==================  ==============================
present            same hash           none (either overlay)
present            different hash      download, keep local overlay
present            absent              download, enabled
absent             present             delete the actual path
=================  ==================  ==============================

Excluded paths are ignored on both sides.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .models import LocalRecord, ManifestEntry, Overlay, PlannedDownload, SyncPlan
from .paths import DEFAULT_RESERVED_DIR, is_excluded

logger = logging.getLogger(__name__)


class ReconciliationPlanner:
    """Compute the minimal download/delete plan for a full sync.

    Args:
        reserved_dir: Name of the user-customisations directory.
    """

    def __init__(self, reserved_dir: str = DEFAULT_RESERVED_DIR) -> None:
        self.reserved_dir = reserved_dir

    def plan(
        self,
        manifest: Iterable[ManifestEntry],
        local_records: Iterable[LocalRecord],
    ) -> SyncPlan:
        """Diff *manifest* against *local_records*.

        Args:
            manifest: Remote entries (canonical paths).
            local_records: Records from ``LocalMirrorScanner``.

        Returns:
            Downloads sorted by canonical path and deletes sorted by
            actual path.
        """
        remote = {
            entry.path: entry.content_hash
            for entry in manifest
            if not is_excluded(entry.path, self.reserved_dir)
        }
        local = self._index_local(local_records, remote)

        downloads: list[PlannedDownload] = []
        for path in sorted(remote):
            record = local.get(path)
            if record is None:
                downloads.append(PlannedDownload(path=path))
            elif record.content_hash != remote[path]:
                downloads.append(
                    PlannedDownload(path=path, overlay=record.overlay)
                )

        deletes = sorted(
            record.actual_path
            for canonical, record in local.items()
            if canonical not in remote
        )

        logger.debug(
            "Planned %d downloads, %d deletes (%d remote, %d local)",
            len(downloads),
            len(deletes),
            len(remote),
            len(local),
        )
        return SyncPlan(downloads=downloads, deletes=deletes)

    def _index_local(
        self,
        local_records: Iterable[LocalRecord],
        remote: dict[str, str],
    ) -> dict[str, LocalRecord]:
        """Index retained local records by canonical path.

        A remote file whose own basename starts with the disable marker
        shows up locally as a "disabled" record; it is matched by its
        actual path when its canonical path is unknown remotely.
        """
        index: dict[str, LocalRecord] = {}
        for record in local_records:
            if is_excluded(record.actual_path, self.reserved_dir):
                continue
            if (
                record.overlay == Overlay.DISABLED
                and record.canonical_path not in remote
                and record.actual_path in remote
            ):
                record = LocalRecord(
                    canonical_path=record.actual_path,
                    actual_path=record.actual_path,
                    content_hash=record.content_hash,
                    overlay=Overlay.ENABLED,
                )
            index.setdefault(record.canonical_path, record)
        return index
