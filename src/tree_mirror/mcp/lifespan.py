"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import build_config, yaml_fallbacks
from ..core.async_utils import init_semaphore, run_sync
from ..core.client import GitHubClient
from ..mirror.engine import MirrorSyncEngine

logger = logging.getLogger(__name__)

CONFIG_HINT = "Ensure MIRROR_REPO_OWNER, MIRROR_REPO_NAME and MIRROR_ROOT are set."


def _stderr_print(msg: str) -> None:
    """Print to stderr (stdout carries the JSON-RPC stream)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Build the engine on startup; fail fast on bad config or an unreachable remote.

    Startup:
    - Load .env, so values are visible to env lookups and YAML interpolation
    - Load YAML config files as fallbacks
    - Merge sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Resolve the configured branch to check repository access
    - Create the MirrorSyncEngine

    Args:
        config_overrides: CLI values (owner, repo, root, branch, subtree,
            token, insecure, debug)

    Yields:
        Dict with 'client' and 'engine' keys

    Raises:
        RuntimeError: If configuration is invalid or the remote is unreachable.
    """
    logger.info("MCP server starting...")
    _stderr_print("Tree Mirror MCP Server starting...")

    overrides = config_overrides or {}
    try:
        load_dotenv()

        fallbacks: dict[str, Any] | None = None
        sources = []
        config_files = discover_config_files()
        if config_files:
            fallbacks = yaml_fallbacks(build_config(load_hierarchical_config()))
            sources.append(f"config file: {config_files[0]}")

        config = load_config(
            repo_owner=overrides.get("owner"),
            repo_name=overrides.get("repo"),
            mirror_root=overrides.get("root"),
            branch=overrides.get("branch"),
            subtree=overrides.get("subtree"),
            token=overrides.get("token"),
            insecure=overrides.get("insecure", False),
            debug=overrides.get("debug", False),
            yaml_fallbacks=fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        repo = f"{config.repo_owner}/{config.repo_name}@{config.branch}"
        if config.subtree:
            repo += f":{config.subtree}"
        logger.info("Mirroring %s into %s", repo, config.mirror_path)
        _stderr_print(f"  Mirroring {repo} into {config.mirror_path}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(f"  {CONFIG_HINT}")
        raise RuntimeError(f"Configuration error: {e}. {CONFIG_HINT}") from e

    logger.info("Validating repository access...")
    _stderr_print("  Validating repository access...")
    try:
        client = GitHubClient(config)
        head = await run_sync(client.validate_connection)
    except Exception as e:
        logger.error("Failed to reach repository: %s", e)
        _stderr_print("ERROR: Repository not reachable.")
        _stderr_print(f"  {e}")
        raise RuntimeError(f"Repository not reachable: {e}") from e

    logger.info("Branch %s is at %s", config.branch, head)
    _stderr_print(f"  Branch {config.branch} is at {head[:7]}")
    if not config.mirror_path.is_dir():
        logger.warning("Mirror directory %s does not exist yet", config.mirror_path)
        _stderr_print(
            f"  WARNING: mirror directory {config.mirror_path} does not exist; "
            "mirror tools will fail until it is created."
        )

    # One mirror operation in flight at a time.
    init_semaphore(1)
    engine = MirrorSyncEngine(client, config)
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"client": client, "engine": engine}

    logger.info("MCP server shutting down")
    _stderr_print("Tree Mirror MCP Server shutting down.")
