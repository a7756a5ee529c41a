"""Tests for ToolSpec and ToolRegistry.

Covers:
- ToolSpec immutability
- read-only filtering of mutating tools
- call_tool dispatch and error translation
"""

import dataclasses
from unittest.mock import MagicMock

import mcp.types as types
import pytest

from tree_mirror.errors import FilesystemError, NetworkError
from tree_mirror.mcp.tools import ALL_SPECS
from tree_mirror.mcp.tools.registry import ToolRegistry, ToolSpec


def _make_spec(name: str, mutating: bool = False, handler=None) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if handler is None:

        async def handler(engine, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}:{args}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        handler=handler,
        mutating=mutating,
    )


def _raising(exc: Exception):
    async def handler(engine, args):
        raise exc

    return handler


class TestToolSpec:
    def test_frozen(self):
        spec = _make_spec("a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            spec.mutating = True

    def test_default_not_mutating(self):
        assert _make_spec("a").mutating is False


class TestFiltering:
    def test_all_tools(self):
        registry = ToolRegistry([_make_spec("a"), _make_spec("b", mutating=True)])
        assert [t.name for t in registry.list_tools()] == ["a", "b"]
        assert registry.tool_count() == 2

    def test_read_only_drops_mutating(self):
        registry = ToolRegistry(
            [_make_spec("a"), _make_spec("b", mutating=True)], read_only=True
        )
        assert [t.name for t in registry.list_tools()] == ["a"]

    def test_mirror_tools_read_only(self):
        names = {t.name for t in ToolRegistry(ALL_SPECS, read_only=True).list_tools()}
        assert names == {"mirror_status", "mirror_verify"}


class TestCallTool:
    async def test_dispatch(self):
        registry = ToolRegistry([_make_spec("a")])
        result = await registry.call_tool("a", None, MagicMock())
        assert result.content[0].text == "ok:a:{}"

    async def test_unknown_tool(self):
        with pytest.raises(ValueError, match="Unknown tool"):
            await ToolRegistry([]).call_tool("nope", {}, MagicMock())

    async def test_filtered_tool_is_unknown(self):
        registry = ToolRegistry([_make_spec("b", mutating=True)], read_only=True)
        with pytest.raises(ValueError):
            await registry.call_tool("b", {}, MagicMock())

    async def test_mirror_error_translated(self):
        registry = ToolRegistry(
            [_make_spec("a", handler=_raising(FilesystemError("disk full")))]
        )
        result = await registry.call_tool("a", {}, MagicMock())
        assert result.isError
        assert "Error (filesystem_error): disk full" in result.content[0].text

    async def test_validation_error(self):
        registry = ToolRegistry([_make_spec("a", handler=_raising(ValueError("bad")))])
        result = await registry.call_tool("a", {}, MagicMock())
        assert "Error (validation_error): bad" in result.content[0].text

    async def test_unexpected_error(self):
        registry = ToolRegistry(
            [_make_spec("a", handler=_raising(RuntimeError("oops")))]
        )
        result = await registry.call_tool("a", {}, MagicMock())
        assert "Error (server_error): oops" in result.content[0].text

    async def test_network_error(self):
        registry = ToolRegistry(
            [_make_spec("a", handler=_raising(NetworkError("timeout")))]
        )
        result = await registry.call_tool("a", {}, MagicMock())
        assert "Error (network_error)" in result.content[0].text
