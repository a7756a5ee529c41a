"""Result formatting for the CLI and the MCP tools.

- ``format_sync_result`` -- post-sync summary.
- ``format_verification_report`` -- discrepancy listing, grouped by action.
- ``format_status`` -- head vs. baseline.
- ``result_to_json`` / ``report_to_json`` -- structured dicts for MCP
  ``structuredContent`` and ``--json`` output.
"""

from __future__ import annotations

from .models import (
    Overlay,
    PlannedDownload,
    SyncMode,
    SyncResult,
    SyncStatus,
    VerificationReport,
)
from .paths import DEFAULT_RESERVED_DIR, is_excluded

# Listing more than this many paths per section is summarised by count.
MAX_LISTED_PATHS = 50


def _short(revision: str | None) -> str:
    return revision[:7] if revision else "(none)"


# ------------------------------------------------------------------
# Human-readable output
# ------------------------------------------------------------------


def format_sync_result(result: SyncResult) -> str:
    """Format a sync or apply-fixes result as human-readable text.

    Args:
        result: Outcome of ``MirrorSyncEngine.sync`` or ``apply_fixes``.

    Returns:
        Multi-line formatted string.
    """
    if result.mode == SyncMode.UP_TO_DATE:
        return f"Already up to date at {_short(result.new_revision)}."

    lines: list[str] = []
    if result.mode == SyncMode.FIXES:
        lines.append(f"Verification fixes applied at {_short(result.new_revision)}")
    else:
        header = f"{result.mode.value.capitalize()} sync to {_short(result.new_revision)}"
        if result.fell_back:
            header += " (fell back from incremental)"
        lines.append(header)

    lines.append(result.summary())
    if result.directories_removed:
        lines.append(f"Removed {result.directories_removed} empty directories")
    return "\n".join(lines)


def _format_paths(title: str, paths: list[str]) -> list[str]:
    lines = [f"{title} ({len(paths)}):"]
    for path in paths[:MAX_LISTED_PATHS]:
        lines.append(f"  {path}")
    if len(paths) > MAX_LISTED_PATHS:
        lines.append(f"  ... ({len(paths) - MAX_LISTED_PATHS} more)")
    lines.append("")
    return lines


def format_verification_report(report: VerificationReport) -> str:
    """Format a verification report for review before applying it."""
    lines = [f"Verification against {_short(report.revision)}", ""]
    if not report.has_discrepancies:
        lines.append("Mirror matches remote. No changes needed.")
        return "\n".join(lines)

    if report.files_to_download:
        lines.extend(
            _format_paths(
                "To download",
                [
                    f"{item.path} (disabled)"
                    if item.overlay == Overlay.DISABLED
                    else item.path
                    for item in report.files_to_download
                ],
            )
        )
    if report.files_to_delete:
        lines.extend(_format_paths("To delete", report.files_to_delete))

    return "\n".join(lines).rstrip()


def format_status(status: SyncStatus) -> str:
    """Format a status check as human-readable text."""
    latest = status.latest_revision[:7]
    if status.latest_revision_date:
        latest += f" ({status.latest_revision_date})"
    lines = [
        f"Latest revision: {latest}",
        f"Last synced:     {_short(status.last_revision)}",
    ]
    if status.has_changes:
        lines.append("Updates available.")
    else:
        lines.append("Up to date.")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: SyncResult) -> dict:
    """Convert a sync result to a plain dict."""
    return result.model_dump(mode="json")


def report_to_json(report: VerificationReport) -> dict:
    """Convert a verification report to a plain dict.

    Downloads are flattened to ``{"path", "to_disabled"}`` pairs.
    """
    return {
        "revision": report.revision,
        "has_discrepancies": report.has_discrepancies,
        "files_to_download": [
            {
                "path": item.path,
                "to_disabled": item.overlay == Overlay.DISABLED,
            }
            for item in report.files_to_download
        ],
        "files_to_delete": list(report.files_to_delete),
    }


def _checked_path(value: object, reserved_dir: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"Report path must be a non-empty string: {value!r}")
    if value.startswith("/"):
        raise ValueError(f"Report path '{value}' must be relative to the mirror root")
    parts = value.split("/")
    if ".." in parts or "" in parts or "." in parts:
        raise ValueError(f"Report path '{value}' must stay inside the mirror")
    if is_excluded(value, reserved_dir):
        raise ValueError(f"Report path '{value}' is hidden or reserved")
    return value


def report_from_json(
    data: dict, reserved_dir: str = DEFAULT_RESERVED_DIR
) -> VerificationReport:
    """Rebuild a report produced by ``report_to_json``.

    Paths come from the caller, so each one is checked before it can
    reach the filesystem.

    Raises:
        ValueError: If an item is malformed, or a path is absolute,
            escapes the mirror root, or is hidden or reserved.
    """
    downloads = data.get("files_to_download", [])
    deletes = data.get("files_to_delete", [])
    if not isinstance(downloads, list) or not isinstance(deletes, list):
        raise ValueError("files_to_download and files_to_delete must be lists")

    planned: list[PlannedDownload] = []
    for item in downloads:
        if not isinstance(item, dict) or "path" not in item:
            raise ValueError(
                f"Each download must be an object with a 'path', got {item!r}"
            )
        planned.append(
            PlannedDownload(
                path=_checked_path(item["path"], reserved_dir),
                overlay=Overlay.DISABLED
                if item.get("to_disabled")
                else Overlay.ENABLED,
            )
        )

    revision = data.get("revision")
    if revision is not None and not isinstance(revision, str):
        raise ValueError("revision must be a string")

    return VerificationReport(
        files_to_download=planned,
        files_to_delete=[_checked_path(path, reserved_dir) for path in deletes],
        revision=revision,
    )
