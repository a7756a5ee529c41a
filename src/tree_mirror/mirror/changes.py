"""Remote change sets between two revisions.

The compare API returns at most ``COMPARE_FILE_LIMIT`` files.  A response
of exactly that size may be silently cut short, so it is flagged as
truncated and callers must fall back to a full manifest comparison.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .models import Change, ChangeKind, ChangeSet

if TYPE_CHECKING:
    from ..core.client import GitHubClient

logger = logging.getLogger(__name__)

COMPARE_FILE_LIMIT = 300

_STATUS_KINDS: dict[str, ChangeKind] = {
    "added": ChangeKind.ADDED,
    "copied": ChangeKind.ADDED,
    "modified": ChangeKind.MODIFIED,
    "changed": ChangeKind.MODIFIED,
    "removed": ChangeKind.REMOVED,
    "renamed": ChangeKind.RENAMED,
}


def classify_status(status: str) -> ChangeKind:
    """Map a compare-API status string to a ``ChangeKind``."""
    return _STATUS_KINDS.get(status.lower(), ChangeKind.UNKNOWN)


def change_from_record(record: dict[str, Any]) -> Change:
    """Convert one compare-API file record to a ``Change``."""
    status = str(record.get("status", ""))
    return Change(
        kind=classify_status(status),
        path=record["filename"],
        previous_path=record.get("previous_filename"),
        content_hash=record.get("sha"),
        status=status,
    )


class ChangeSetFetcher:
    """Fetch and classify the files changed between two revisions.

    Args:
        client: Remote API client.
        limit: File count at which a comparison is considered truncated.
    """

    def __init__(
        self, client: GitHubClient, limit: int = COMPARE_FILE_LIMIT
    ) -> None:
        self.client = client
        self.limit = limit

    def diff(self, base_revision: str, head_revision: str) -> ChangeSet:
        """Compare ``base_revision...head_revision``.

        Returns:
            A ``ChangeSet``; ``truncated`` is set when the file count
            reached the limit.

        Raises:
            NotFoundError: If either revision is unknown remotely.
            NetworkError: On transport or API failure.
        """
        data = self.client.compare(base_revision, head_revision)
        records = data.get("files") or []
        truncated = len(records) >= self.limit
        if truncated:
            logger.info(
                "Compare %s...%s returned %d files (limit %d); result is truncated",
                base_revision[:12],
                head_revision[:12],
                len(records),
                self.limit,
            )

        changes = [change_from_record(r) for r in records]
        return ChangeSet(
            base_revision=base_revision,
            head_revision=head_revision,
            changes=changes,
            truncated=truncated,
        )
