"""MCP tools for the mirror engine.

- ``mirror_status`` -- branch head vs. recorded baseline.
- ``mirror_sync`` -- incremental (or full) sync, optionally followed by a
  verification scan.
- ``mirror_verify`` -- read-only audit of the mirror.
- ``mirror_apply_fixes`` -- apply a verification report.

Mirror operations run one at a time through ``run_sync_limited``; the
status check only reads the remote and uses ``run_sync``.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync, run_sync_limited
from ...mirror.engine import MirrorSyncEngine
from ...mirror.reporter import (
    format_status,
    format_sync_result,
    format_verification_report,
    report_from_json,
    report_to_json,
    result_to_json,
)
from .registry import ToolSpec

logger = logging.getLogger(__name__)


def _text_result(
    text: str, structured: dict[str, Any] | None = None
) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_status(
    engine: MirrorSyncEngine, args: dict
) -> types.CallToolResult:
    status = await run_sync(engine.check_status, args.get("last_revision"))
    return _text_result(format_status(status), status.model_dump(mode="json"))


async def _handle_sync(
    engine: MirrorSyncEngine, args: dict
) -> types.CallToolResult:
    full = bool(args.get("full", False))
    result = await run_sync_limited(engine.sync, full=full)
    text = format_sync_result(result)
    structured: dict[str, Any] = {"result": result_to_json(result)}

    if args.get("verify", False):
        report = await run_sync_limited(engine.verify)
        text += "\n\n" + format_verification_report(report)
        structured["verification"] = report_to_json(report)

    return _text_result(text, structured)


async def _handle_verify(
    engine: MirrorSyncEngine, args: dict
) -> types.CallToolResult:
    report = await run_sync_limited(engine.verify)
    return _text_result(
        format_verification_report(report), report_to_json(report)
    )


async def _handle_apply_fixes(
    engine: MirrorSyncEngine, args: dict
) -> types.CallToolResult:
    """Apply the given report, or a fresh verification when none is given."""
    raw_report = args.get("report")
    if raw_report is not None and not isinstance(raw_report, dict):
        raise ValueError("report must be an object as returned by mirror_verify")

    if raw_report is None:
        report = await run_sync_limited(engine.verify)
    else:
        report = report_from_json(raw_report, engine.config.reserved_dir)

    if not report.has_discrepancies:
        return _text_result(
            "Mirror matches remote. Nothing to apply.",
            {"result": None, "verification": report_to_json(report)},
        )

    result = await run_sync_limited(engine.apply_fixes, report)
    return _text_result(
        format_sync_result(result), {"result": result_to_json(result)}
    )


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

MIRROR_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="mirror_status",
            description=(
                "Compare the remote branch head with the last synced revision. "
                "Changes nothing."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "last_revision": {
                        "type": "string",
                        "description": (
                            "Revision to compare against. Defaults to the recorded baseline."
                        ),
                    },
                },
                "required": [],
            },
        ),
        handler=_handle_status,
    ),
    ToolSpec(
        tool=types.Tool(
            name="mirror_sync",
            description=(
                "Bring the local mirror up to date with the remote branch. "
                "Uses the change list since the last sync when possible and "
                "falls back to a full comparison otherwise. Disabled files "
                "stay disabled; the reserved directory is never touched."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "full": {
                        "type": "boolean",
                        "default": False,
                        "description": "Force a full comparison",
                    },
                    "verify": {
                        "type": "boolean",
                        "default": False,
                        "description": "Run a verification scan afterwards",
                    },
                },
                "required": [],
            },
        ),
        handler=_handle_sync,
        mutating=True,
    ),
    ToolSpec(
        tool=types.Tool(
            name="mirror_verify",
            description=(
                "Compare every local file with the remote and list files to "
                "download or delete. Changes nothing; pass the result to "
                "mirror_apply_fixes to apply it."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {},
                "required": [],
            },
        ),
        handler=_handle_verify,
    ),
    ToolSpec(
        tool=types.Tool(
            name="mirror_apply_fixes",
            description=(
                "Download missing or mismatched files and delete extra ones, "
                "as listed by mirror_verify. Without a report, a fresh "
                "verification is run and applied."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "report": {
                        "type": "object",
                        "description": "structuredContent returned by mirror_verify",
                        "properties": {
                            "revision": {"type": ["string", "null"]},
                            "files_to_download": {
                                "type": "array",
                                "items": {
                                    "type": "object",
                                    "properties": {
                                        "path": {"type": "string"},
                                        "to_disabled": {"type": "boolean"},
                                    },
                                    "required": ["path"],
                                },
                            },
                            "files_to_delete": {
                                "type": "array",
                                "items": {"type": "string"},
                            },
                        },
                    },
                },
                "required": [],
            },
        ),
        handler=_handle_apply_fixes,
        mutating=True,
    ),
]

MIRROR_TOOLS: list[types.Tool] = [spec.tool for spec in MIRROR_SPECS]
