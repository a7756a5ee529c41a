"""MCP tool handlers for mirror operations.

Handlers wrap the blocking ``MirrorSyncEngine`` in async calls and return
text plus structured content, or structured error responses.
"""

from .errors import build_error_response, translate_mirror_error
from .mirror import MIRROR_SPECS, MIRROR_TOOLS
from .registry import ToolRegistry, ToolSpec

ALL_SPECS: list[ToolSpec] = list(MIRROR_SPECS)

__all__ = [
    "build_error_response",
    "translate_mirror_error",
    "ToolSpec",
    "ToolRegistry",
    "ALL_SPECS",
    "MIRROR_SPECS",
    "MIRROR_TOOLS",
]
