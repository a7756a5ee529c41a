"""Read-only audit of the mirror against a remote manifest."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from .models import ManifestEntry, SyncPlan, VerificationReport
from .paths import DEFAULT_RESERVED_DIR
from .planner import ReconciliationPlanner
from .scanner import LocalMirrorScanner

logger = logging.getLogger(__name__)


class VerificationScanner:
    """Compare the mirror with a manifest without touching either.

    Uses the same decision table as ``ReconciliationPlanner``; the
    result is a ``VerificationReport`` that can be applied later with
    ``report_to_plan``.

    Args:
        reserved_dir: Name of the user-customisations directory.
    """

    def __init__(self, reserved_dir: str = DEFAULT_RESERVED_DIR) -> None:
        self.scanner = LocalMirrorScanner(reserved_dir)
        self.planner = ReconciliationPlanner(reserved_dir)

    def verify(
        self,
        mirror_root: Path,
        manifest: Iterable[ManifestEntry],
        revision: str | None = None,
    ) -> VerificationReport:
        """Scan *mirror_root* and report discrepancies with *manifest*.

        Raises:
            MirrorNotFoundError: If *mirror_root* does not exist.
            FilesystemError: If a local file cannot be read.
        """
        plan = self.planner.plan(manifest, self.scanner.scan(mirror_root))
        report = VerificationReport(
            files_to_download=plan.downloads,
            files_to_delete=plan.deletes,
            revision=revision,
        )
        if report.has_discrepancies:
            logger.info(
                "Verification found %d files to download and %d to delete",
                len(report.files_to_download),
                len(report.files_to_delete),
            )
        else:
            logger.info("Verification passed: mirror matches remote")
        return report


def report_to_plan(report: VerificationReport) -> SyncPlan:
    """Turn a verification report into an executable plan."""
    return SyncPlan(
        downloads=report.files_to_download, deletes=report.files_to_delete
    )
