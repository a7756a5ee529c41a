"""Pydantic models for the mirror reconciliation engine.

Defines the data contracts passed between the fetchers, the scanner,
the planners and the executor:

- ``Overlay``: Local enabled/disabled state of a file.
- ``ManifestEntry``: One blob of the remote subtree.
- ``LocalRecord``: One file found in the local mirror.
- ``ChangeKind`` / ``Change`` / ``ChangeSet``: Remote revision-range diff.
- ``PlannedDownload`` / ``SyncPlan``: What a full sync will do.
- ``SyncResult``: Outcome of a sync or apply run.
- ``VerificationReport``: Read-only post-sync audit.
- ``SyncStatus``: Remote head vs. last known baseline.
- ``ProgressEvent``: One progress notification.

All models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, computed_field


class Overlay(str, Enum):
    """Local-only per-file preference."""

    ENABLED = "enabled"
    DISABLED = "disabled"


class SyncMode(str, Enum):
    """How a ``SyncResult`` was produced."""

    FULL = "full"
    INCREMENTAL = "incremental"
    UP_TO_DATE = "up_to_date"
    FIXES = "fixes"


class ManifestEntry(BaseModel):
    """A blob in the remote subtree.

    Attributes:
        path: Canonical path relative to the subtree root.
        content_hash: Git blob id of the remote content.
    """

    path: str
    content_hash: str

    model_config = {"frozen": True}


class LocalRecord(BaseModel):
    """A regular file found in the local mirror.

    Attributes:
        canonical_path: Path with any overlay transform removed.
        actual_path: Path as it exists on disk (relative to the root).
        content_hash: Git blob id of the local content.
        overlay: Whether the file is enabled or disabled.
    """

    canonical_path: str
    actual_path: str
    content_hash: str
    overlay: Overlay = Overlay.ENABLED

    model_config = {"frozen": True}


class ChangeKind(str, Enum):
    """Classification of one file in a revision-range comparison."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"
    UNKNOWN = "unknown"


class Change(BaseModel):
    """One changed file between two remote revisions.

    Paths are repository-root relative, as returned by the compare API.

    Attributes:
        kind: Classified change kind.
        path: New (or only) path of the file.
        previous_path: Old path, for renames.
        content_hash: Blob id of the new content, when the API reports it.
        status: Raw status string, kept for progress messages.
    """

    kind: ChangeKind
    path: str
    previous_path: str | None = None
    content_hash: str | None = None
    status: str = ""

    model_config = {"frozen": True}


class ChangeSet(BaseModel):
    """Result of comparing ``base_revision...head_revision``.

    Attributes:
        base_revision: Last known revision.
        head_revision: Revision being synced to.
        changes: Classified changes, in API order.
        truncated: True when the comparison hit its file limit.
    """

    base_revision: str
    head_revision: str
    changes: list[Change] = []
    truncated: bool = False

    model_config = {"frozen": True}


class PlannedDownload(BaseModel):
    """A canonical path to fetch, and the overlay state to write it in."""

    path: str
    overlay: Overlay = Overlay.ENABLED

    model_config = {"frozen": True}


class SyncPlan(BaseModel):
    """Downloads and deletes computed by a full reconciliation.

    Attributes:
        downloads: Files to fetch, sorted by canonical path.
        deletes: Actual (on-disk) relative paths to remove, sorted.
    """

    downloads: list[PlannedDownload] = []
    deletes: list[str] = []

    model_config = {"frozen": True}

    @property
    def total(self) -> int:
        """Number of filesystem operations in the plan."""
        return len(self.downloads) + len(self.deletes)

    @property
    def is_empty(self) -> bool:
        """True when the mirror already matches the manifest."""
        return self.total == 0


class SyncResult(BaseModel):
    """Outcome of a sync (or apply-fixes) run.

    ``new_revision`` must be persisted by the caller as the next baseline.
    """

    files_downloaded: int = 0
    files_deleted: int = 0
    files_renamed: int = 0
    files_skipped: int = 0
    directories_removed: int = 0
    new_revision: str
    mode: SyncMode = SyncMode.FULL
    fell_back: bool = False

    model_config = {"frozen": True}

    def summary(self) -> str:
        """Format a one-line summary of the counts."""
        return (
            f"Downloaded: {self.files_downloaded}, "
            f"Deleted: {self.files_deleted}, "
            f"Renamed: {self.files_renamed}, "
            f"Skipped: {self.files_skipped}"
        )


class VerificationReport(BaseModel):
    """Discrepancies between the mirror and the remote manifest.

    Applying the report is a separate, explicit step.

    Attributes:
        files_to_download: Missing or mismatched files.
        files_to_delete: Actual paths of local files absent remotely.
        revision: Remote revision the manifest was taken from.
    """

    files_to_download: list[PlannedDownload] = []
    files_to_delete: list[str] = []
    revision: str | None = None

    model_config = {"frozen": True}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_discrepancies(self) -> bool:
        return bool(self.files_to_download or self.files_to_delete)


class SyncStatus(BaseModel):
    """Remote head compared with the last known baseline."""

    latest_revision: str
    latest_revision_date: str | None = None
    last_revision: str | None = None
    has_changes: bool

    model_config = {"frozen": True}


class ProgressEvent(BaseModel):
    """A single progress notification.

    ``current``/``total`` are only set for per-item events and always
    satisfy ``current <= total``.
    """

    stage: str
    message: str
    current: int | None = None
    total: int | None = None

    model_config = {"frozen": True}


class RemoteCommit(BaseModel):
    """A resolved remote revision."""

    sha: str
    tree_sha: str
    date: str | None = None

    model_config = {"frozen": True}
