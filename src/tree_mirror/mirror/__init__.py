"""One-way mirror of a remote repository subtree into a local directory.

Architecture
------------
The remote is the single source of truth.  The local mirror may carry one
piece of local-only state per file, its *overlay*: a file whose basename
is prefixed with ``-`` is *disabled* and is treated everywhere as the
same logical file as its enabled form.  Content is compared by git blob
id, so unchanged files are never downloaded.

Two sync paths exist:

- **full**: list every blob of the remote subtree, scan the mirror, and
  plan the minimal set of downloads and deletes.
- **incremental**: compare the last synced revision with the head and
  apply the change set directly.  Falls back to full when the baseline is
  unknown upstream or the comparison is truncated.

Modules:

- ``hashing``     -- git blob ids with text line-ending normalisation.
- ``paths``       -- overlay transform, exclusion and subtree rules.
- ``models``      -- data contracts (frozen pydantic models).
- ``manifest``    -- ``RemoteManifestFetcher``.
- ``changes``     -- ``ChangeSetFetcher``.
- ``scanner``     -- ``LocalMirrorScanner``.
- ``planner``     -- ``ReconciliationPlanner`` (full sync).
- ``incremental`` -- ``IncrementalReconciler``.
- ``executor``    -- ``SyncExecutor``: downloads, deletes, moves.
- ``verify``      -- ``VerificationScanner`` and ``report_to_plan``.
- ``compactor``   -- ``DirectoryCompactor``.
- ``state``       -- ``RevisionStore``: the persisted baseline.
- ``engine``      -- ``MirrorSyncEngine``: the control flow.
- ``reporter``    -- human-readable and JSON formatting.

Usage example
-------------
::

    from tree_mirror.config import load_config
    from tree_mirror.core.client import GitHubClient
    from tree_mirror.mirror import MirrorSyncEngine, format_sync_result

    config = load_config()
    engine = MirrorSyncEngine(GitHubClient(config), config)

    print(format_sync_result(engine.sync()))

    report = engine.verify()
    if report.has_discrepancies:
        engine.apply_fixes(report)
"""

from .engine import MirrorSyncEngine
from .models import (
    Change,
    ChangeKind,
    ChangeSet,
    LocalRecord,
    ManifestEntry,
    Overlay,
    ProgressEvent,
    SyncMode,
    SyncPlan,
    SyncResult,
    SyncStatus,
    VerificationReport,
)
from .reporter import (
    format_status,
    format_sync_result,
    format_verification_report,
    report_to_json,
    result_to_json,
)
from .state import RevisionStore

__all__ = [
    "Change",
    "ChangeKind",
    "ChangeSet",
    "LocalRecord",
    "ManifestEntry",
    "MirrorSyncEngine",
    "Overlay",
    "ProgressEvent",
    "RevisionStore",
    "SyncMode",
    "SyncPlan",
    "SyncResult",
    "SyncStatus",
    "VerificationReport",
    "format_status",
    "format_sync_result",
    "format_verification_report",
    "report_to_json",
    "result_to_json",
]
