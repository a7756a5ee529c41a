"""MCP server for the mirror engine using stdio transport.

Exposes sync, verification, apply-fixes and status tools so an agent can
keep a local mirror of a repository subtree up to date.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..mirror.engine import MirrorSyncEngine
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

SERVER_NAME = "tree-mirror-mcp"

server = Server(SERVER_NAME)

# Initialized in main() from the lifespan context
_engine: MirrorSyncEngine | None = None

# Initialized in main()
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(
    engine: MirrorSyncEngine, args: dict
) -> types.CallToolResult:
    """Resolve the branch head to test repository access."""
    try:
        head = await run_sync(engine.latest_revision)
    except Exception as e:
        return build_error_response(
            "network_error",
            f"Repository not reachable: {e}",
            "Check MIRROR_REPO_OWNER, MIRROR_REPO_NAME, MIRROR_BRANCH and MIRROR_TOKEN.",
        )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=(
                    f"Tree mirror server connected. "
                    f"{engine.config.branch} is at {head}"
                ),
            )
        ]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test repository access and return the branch head revision",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_engine() -> MirrorSyncEngine:
    """Get the global MirrorSyncEngine.

    Raises:
        RuntimeError: If the server lifespan has not started.
    """
    if _engine is None:
        raise RuntimeError(
            "MirrorSyncEngine not initialized. Server lifespan not started."
        )
    return _engine


def set_engine(engine: MirrorSyncEngine | None) -> None:
    global _engine
    _engine = engine


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry.

    Raises:
        RuntimeError: If the registry is not initialized.
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List the registered tools (read-only mode hides mutating ones)."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Dispatch a tool call through the ToolRegistry."""
    engine = get_engine()
    try:
        return await get_registry().call_tool(name, arguments, engine)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Args:
        config_overrides: CLI values (owner, repo, root, branch, subtree,
            token, insecure, debug, log_file, read_only)
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    read_only = overrides.pop("read_only", False)

    # Must run before stdio_server so nothing reaches stdout.
    setup_logging(
        mode="mcp", debug=overrides.get("debug", False), log_file=log_file
    )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )
    if read_only:
        print(
            f"Read-only mode: {registry.tool_count()} of {len(all_specs)} tools enabled",
            file=sys.stderr,
        )
    set_registry(registry)

    # Set here, not in the lifespan: under `python -m` this module is __main__.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_engine(ctx["engine"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_engine(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=SERVER_NAME,
        description="Tree Mirror MCP Server - keep a local mirror of a repository subtree up to date",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with configuration from .env or .tree_mirror/config.yml
  tree-mirror-mcp

  # Override the repository and mirror directory
  tree-mirror-mcp --owner example-org --repo assets --root ~/mirror

  # Expose only status, verify and ping
  tree-mirror-mcp --read-only

Note: stdout carries JSON-RPC messages; all user-facing output goes to stderr.
        """,
    )
    parser.add_argument("--owner", help="Repository owner (overrides MIRROR_REPO_OWNER)")
    parser.add_argument("--repo", help="Repository name (overrides MIRROR_REPO_NAME)")
    parser.add_argument("--root", help="Local mirror directory (overrides MIRROR_ROOT)")
    parser.add_argument("--branch", help="Branch to follow (overrides MIRROR_BRANCH)")
    parser.add_argument("--subtree", help="Repository subtree (overrides MIRROR_SUBTREE)")
    parser.add_argument(
        "--token",
        help="API token (visible in process list -- prefer MIRROR_TOKEN)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Do not expose tools that modify the mirror",
    )
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level")
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{SERVER_NAME} version {__version__}",
    )
    return parser


def run() -> None:
    """Entry point: parse CLI arguments and run the server."""
    args = build_parser().parse_args()

    config_overrides: dict = {
        key: value
        for key, value in (
            ("owner", args.owner),
            ("repo", args.repo),
            ("root", args.root),
            ("branch", args.branch),
            ("subtree", args.subtree),
            ("token", args.token),
        )
        if value
    }
    if args.insecure:
        config_overrides["insecure"] = True
    if args.debug:
        config_overrides["debug"] = True

    if config_overrides:
        shown = [k for k in config_overrides if k != "token"]
        print(
            f"Config overrides from CLI: {', '.join(shown)}",
            file=sys.stderr,
        )

    config_overrides["log_file"] = args.log_file
    config_overrides["read_only"] = args.read_only

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Already reported on stderr by the lifespan
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
