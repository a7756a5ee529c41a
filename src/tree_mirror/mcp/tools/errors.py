"""Structured error responses for MCP tool handlers.

Each response carries a corrective action so an agent can recover
without human intervention.
"""

import mcp.types as types

from ...errors import (
    FilesystemError,
    MirrorNotFoundError,
    MirrorSyncError,
    NetworkError,
    NotFoundError,
    TruncatedResultError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, permission_denied,
            network_error, filesystem_error, validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take

    Returns:
        CallToolResult with isError=True
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_mirror_error(error: MirrorSyncError) -> types.CallToolResult:
    """Map a mirror exception to an error response by its type."""
    message = str(error)
    match error:
        case MirrorNotFoundError():
            return build_error_response(
                "not_found",
                message,
                "Create the mirror directory or fix MIRROR_ROOT, then retry.",
            )
        case FilesystemError():
            return build_error_response(
                "filesystem_error",
                message,
                "Check permissions and free space in the mirror directory, "
                "then run mirror_verify.",
            )
        case NotFoundError():
            return build_error_response(
                "not_found",
                message,
                "Check MIRROR_REPO_OWNER, MIRROR_REPO_NAME, MIRROR_BRANCH and MIRROR_SUBTREE.",
            )
        case NetworkError(status_code=401 | 403):
            return build_error_response(
                "permission_denied",
                message,
                "Set MIRROR_TOKEN (or GITHUB_TOKEN) or wait for the API rate limit to reset.",
            )
        case NetworkError():
            return build_error_response(
                "network_error",
                message,
                "Retry later; the mirror is left as is and mirror_verify will report any gaps.",
            )
        case TruncatedResultError():
            return build_error_response(
                "server_error",
                message,
                "Run mirror_sync with full=true.",
            )
        case _:
            return build_error_response(
                "server_error", message, "Check the server log and retry."
            )
