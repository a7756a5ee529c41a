"""Mirror sync engine: the control flow of one sync, verify or apply run.

``MirrorSyncEngine`` wires the fetchers, the scanner, the planners, the
executor and the compactor together:

1. Check that the mirror root exists (before any network call).
2. Resolve the branch head to a commit.
3. Stop early if the head equals the recorded baseline.
4. Try the incremental path when a baseline is known; on
   ``FallbackRequired`` (baseline unknown upstream, or a truncated
   comparison) retry once as a full sync.
5. Compact empty directories.
6. Persist the new baseline.

Any other error propagates immediately.  A run is not transactional: files
already written or deleted stay as they are, and ``verify()`` followed by
``apply_fixes()`` is the way to bring a mirror back in line.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..config import Config
from ..errors import FallbackRequired, MirrorNotFoundError, TruncatedResultError
from .changes import ChangeSetFetcher
from .compactor import DirectoryCompactor
from .executor import SyncExecutor
from .incremental import IncrementalReconciler
from .manifest import RemoteManifestFetcher
from .models import (
    RemoteCommit,
    SyncMode,
    SyncResult,
    SyncStatus,
    VerificationReport,
)
from .planner import ReconciliationPlanner
from .progress import ProgressCallback, ProgressEmitter
from .scanner import LocalMirrorScanner
from .state import RevisionStore
from .verify import VerificationScanner, report_to_plan

if TYPE_CHECKING:
    from ..core.client import GitHubClient

logger = logging.getLogger(__name__)


class MirrorSyncEngine:
    """Keep one local mirror in line with one remote subtree.

    Callers must serialise operations against a given mirror root.

    Args:
        client: Remote API client.
        config: Repository coordinates and mirror settings.
        store: Baseline store; defaults to one in ``config.state_path``.
        progress_callback: Receives ``ProgressEvent`` notifications.
    """

    def __init__(
        self,
        client: GitHubClient,
        config: Config,
        store: RevisionStore | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.mirror_root = config.mirror_path
        self.store = store or RevisionStore(config.state_path)
        self.progress = ProgressEmitter(progress_callback)

        self.manifest_fetcher = RemoteManifestFetcher(client)
        self.change_fetcher = ChangeSetFetcher(client)
        self.scanner = LocalMirrorScanner(config.reserved_dir)
        self.planner = ReconciliationPlanner(config.reserved_dir)
        self.verifier = VerificationScanner(config.reserved_dir)
        self.executor = SyncExecutor(
            client,
            self.mirror_root,
            progress=self.progress,
            max_parallel=config.max_parallel_downloads,
        )
        self.compactor = DirectoryCompactor(
            config.reserved_dir, progress=self.progress
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def sync(
        self, full: bool = False, last_revision: str | None = None
    ) -> SyncResult:
        """Bring the mirror to the branch head.

        Args:
            full: Skip the incremental path.
            last_revision: Baseline to diff from; read from the store
                when omitted.

        Returns:
            The run's counts; ``new_revision`` has already been stored
            as the next baseline.

        Raises:
            MirrorNotFoundError: If the mirror root does not exist.
            NetworkError: On any non-recoverable remote failure.
            FilesystemError: On any local write, move or delete failure.
        """
        self._require_mirror()
        if last_revision is None:
            last_revision = self.store.get_last_revision()

        self.progress.emit("fetching", "Fetching latest revision...")
        head = self.client.get_commit(self.config.branch)

        if not full and last_revision == head.sha:
            logger.info("Mirror already at %s", head.sha)
            self.progress.emit("complete", "Already up to date")
            return SyncResult(new_revision=head.sha, mode=SyncMode.UP_TO_DATE)

        if full or not last_revision:
            result = self._full_sync(head)
        else:
            try:
                result = self._incremental_sync(last_revision, head)
            except FallbackRequired as exc:
                logger.info("Incremental sync not possible (%s), running full sync", exc)
                self.progress.emit(
                    "fetching", f"{self._fallback_reason(exc)}, running full sync..."
                )
                result = self._full_sync(head).model_copy(
                    update={"fell_back": True}
                )

        self.progress.emit("sync_complete", "Cleaning up empty directories...")
        removed = self.compactor.compact(self.mirror_root)
        result = result.model_copy(update={"directories_removed": removed})

        self.store.set_last_revision(head.sha)
        self.progress.emit("sync_complete", f"Sync complete! {result.summary()}")
        logger.info("Sync to %s finished: %s", head.sha, result.summary())
        return result

    def verify(self) -> VerificationReport:
        """Audit the mirror against the branch head without changing it."""
        self._require_mirror()
        self.progress.emit("verifying", "Fetching remote manifest...")
        head = self.client.get_commit(self.config.branch)
        manifest = self.manifest_fetcher.fetch_commit(self.config.subtree, head)

        self.progress.emit("verifying", "Scanning local files...")
        report = self.verifier.verify(self.mirror_root, manifest, head.sha)

        if report.has_discrepancies:
            message = (
                f"Found {len(report.files_to_download)} files to download, "
                f"{len(report.files_to_delete)} to delete"
            )
        else:
            message = "Mirror matches remote"
        self.progress.emit("complete", message)
        return report

    def apply_fixes(self, report: VerificationReport) -> SyncResult:
        """Apply a report from ``verify()``.

        Downloads use the revision the report was computed against, or
        the current branch head when the report carries none.  The
        stored baseline is left unchanged.
        """
        self._require_mirror()
        revision = report.revision or self.latest_revision()

        downloaded, deleted = self.executor.apply(
            report_to_plan(report), revision, stage="verifying"
        )
        self.progress.emit("verifying", "Cleaning up empty directories...")
        removed = self.compactor.compact(self.mirror_root)

        result = SyncResult(
            files_downloaded=downloaded,
            files_deleted=deleted,
            directories_removed=removed,
            new_revision=revision,
            mode=SyncMode.FIXES,
        )
        self.progress.emit(
            "complete", f"Verification fixes applied! {result.summary()}"
        )
        return result

    def check_status(self, last_revision: str | None = None) -> SyncStatus:
        """Compare the branch head with the baseline; changes nothing."""
        if last_revision is None:
            last_revision = self.store.get_last_revision()
        head = self.client.get_commit(self.config.branch)
        return SyncStatus(
            latest_revision=head.sha,
            latest_revision_date=head.date,
            last_revision=last_revision,
            has_changes=last_revision != head.sha,
        )

    def latest_revision(self) -> str:
        """SHA of the branch head."""
        return self.client.get_commit(self.config.branch).sha

    # ------------------------------------------------------------------
    # Sync paths
    # ------------------------------------------------------------------

    def _full_sync(self, head: RemoteCommit) -> SyncResult:
        self.progress.emit("fetching", "Fetching remote file list...")
        manifest = self.manifest_fetcher.fetch_commit(self.config.subtree, head)

        self.progress.emit("scanning", "Scanning local files...")
        records = self.scanner.scan(self.mirror_root)

        self.progress.emit("comparing", "Comparing files...")
        plan = self.planner.plan(manifest, records)
        self.progress.emit(
            "comparing",
            f"{len(plan.downloads)} files to download, "
            f"{len(plan.deletes)} to delete",
        )

        downloaded, deleted = self.executor.apply(plan, head.sha)
        return SyncResult(
            files_downloaded=downloaded,
            files_deleted=deleted,
            new_revision=head.sha,
            mode=SyncMode.FULL,
        )

    def _incremental_sync(
        self, last_revision: str, head: RemoteCommit
    ) -> SyncResult:
        self.progress.emit(
            "fetching", f"Fetching changes since {last_revision[:7]}..."
        )
        change_set = self.change_fetcher.diff(last_revision, head.sha)
        reconciler = IncrementalReconciler(
            self.executor,
            subtree=self.config.subtree,
            reserved_dir=self.config.reserved_dir,
            progress=self.progress,
        )
        return reconciler.reconcile(change_set)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_mirror(self) -> None:
        if not self.mirror_root.is_dir():
            raise MirrorNotFoundError(str(self.mirror_root))

    @staticmethod
    def _fallback_reason(exc: FallbackRequired) -> str:
        if isinstance(exc, TruncatedResultError):
            return "Too many changes since last sync"
        return "Previous sync revision not found"
