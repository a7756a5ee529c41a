"""ToolSpec and ToolRegistry for the mirror MCP tools.

- ToolSpec: immutable link between a Tool definition, its handler
  ``(engine, args) -> CallToolResult``, and whether it mutates the mirror.
- ToolRegistry: drops mutating tools in read-only mode, then provides
  list_tools() and call_tool() dispatch with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...errors import MirrorSyncError
from ...mirror.engine import MirrorSyncEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        handler: Async handler with signature (engine, args) -> CallToolResult.
        mutating: True if the tool writes to or deletes from the mirror.
    """

    tool: types.Tool
    handler: Callable[[MirrorSyncEngine, dict], Awaitable[types.CallToolResult]]
    mutating: bool = False


class ToolRegistry:
    """Registry of ToolSpecs, optionally restricted to read-only tools."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {
            spec.tool.name: spec
            for spec in specs
            if not (read_only and spec.mutating)
        }

    def list_tools(self) -> list[types.Tool]:
        """Return the Tool definitions of all registered specs."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        engine: MirrorSyncEngine,
    ) -> types.CallToolResult:
        """Dispatch a tool call to its handler.

        Mirror errors, validation errors and unexpected exceptions are
        turned into structured ``isError`` results with a corrective
        action.

        Raises:
            ValueError: If the tool is unknown or filtered out.
        """
        from .errors import build_error_response, translate_mirror_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        try:
            return await spec.handler(engine, arguments or {})
        except MirrorSyncError as e:
            logger.warning("Mirror error in %s: %s", name, e)
            return translate_mirror_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry.",
            )
