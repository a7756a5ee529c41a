"""Remote access shared between the CLI and the MCP server."""

from .async_utils import run_sync, run_sync_limited
from .client import GitHubClient

__all__ = ["GitHubClient", "run_sync", "run_sync_limited"]
