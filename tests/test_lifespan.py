"""Tests for tree_mirror.mcp.lifespan: server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Loads config from env vars (with optional CLI overrides)
- Creates the GitHubClient and resolves the branch head
- Initializes the single-operation semaphore
- Fails fast on config errors or an unreachable repository
"""

from unittest.mock import MagicMock, patch

import pytest

from tree_mirror.config import Config
from tree_mirror.errors import NetworkError
from tree_mirror.mcp.lifespan import server_lifespan
from tree_mirror.mirror.engine import MirrorSyncEngine

HEAD = "0123456789abcdef0123456789abcdef01234567"


def _make_config(root, **overrides):
    """Create a valid Config for testing."""
    defaults = {
        "repo_owner": "example",
        "repo_name": "assets",
        "mirror_root": str(root),
        "subtree": "textures",
    }
    defaults.update(overrides)
    return Config(**defaults)


def _patches(config, run_sync_result=HEAD, run_sync_error=None, client=None):
    run_sync = patch(
        "tree_mirror.mcp.lifespan.run_sync",
        return_value=run_sync_result,
        side_effect=run_sync_error,
    )
    return (
        patch("tree_mirror.mcp.lifespan.discover_config_files", return_value=[]),
        patch("tree_mirror.mcp.lifespan.load_dotenv"),
        patch("tree_mirror.mcp.lifespan.load_config", return_value=config),
        patch(
            "tree_mirror.mcp.lifespan.GitHubClient",
            return_value=client or MagicMock(),
        ),
        run_sync,
        patch("tree_mirror.mcp.lifespan.init_semaphore"),
        patch("tree_mirror.mcp.lifespan._stderr_print"),
    )


class TestServerLifespanSuccess:
    """Tests for the happy path through server_lifespan()."""

    async def test_successful_startup(self, mirror_root):
        client = MagicMock()
        config = _make_config(mirror_root)
        p_discover, p_dotenv, p_load, p_client, p_run, p_sem, p_print = _patches(
            config, client=client
        )
        with p_discover, p_dotenv, p_load, p_client, p_run as mock_run, p_sem as mock_sem, p_print:
            async with server_lifespan() as ctx:
                assert ctx["client"] is client
                assert isinstance(ctx["engine"], MirrorSyncEngine)
                assert ctx["engine"].config is config
                mock_run.assert_called_once_with(client.validate_connection)
                mock_sem.assert_called_once_with(1)

    async def test_overrides_passed_to_load_config(self, mirror_root):
        config = _make_config(mirror_root)
        p_discover, p_dotenv, p_load, p_client, p_run, p_sem, p_print = _patches(config)
        overrides = {"owner": "o", "repo": "r", "root": "/m", "insecure": True}
        with p_discover, p_dotenv, p_load as mock_load, p_client, p_run, p_sem, p_print:
            async with server_lifespan(config_overrides=overrides):
                kwargs = mock_load.call_args[1]
                assert kwargs["repo_owner"] == "o"
                assert kwargs["repo_name"] == "r"
                assert kwargs["mirror_root"] == "/m"
                assert kwargs["insecure"] is True
                assert kwargs["yaml_fallbacks"] is None

    async def test_missing_mirror_only_warns(self, tmp_path):
        config = _make_config(tmp_path / "absent")
        messages = []
        p_discover, p_dotenv, p_load, p_client, p_run, p_sem, _ = _patches(config)
        with (
            p_discover, p_dotenv, p_load, p_client, p_run, p_sem,
            patch("tree_mirror.mcp.lifespan._stderr_print", side_effect=messages.append),
        ):
            async with server_lifespan() as ctx:
                assert ctx["engine"] is not None
        assert any("does not exist" in m for m in messages)


class TestServerLifespanErrors:
    """Tests for startup failures in server_lifespan()."""

    async def test_config_error_raises_runtime_error(self):
        with (
            patch("tree_mirror.mcp.lifespan.discover_config_files", return_value=[]),
            patch("tree_mirror.mcp.lifespan.load_dotenv"),
            patch(
                "tree_mirror.mcp.lifespan.load_config",
                side_effect=ValueError("Repository owner not found"),
            ),
            patch("tree_mirror.mcp.lifespan._stderr_print"),
        ):
            with pytest.raises(RuntimeError, match="Repository owner not found"):
                async with server_lifespan():
                    pass  # pragma: no cover

    async def test_unreachable_repository(self, mirror_root):
        config = _make_config(mirror_root)
        p_discover, p_dotenv, p_load, p_client, p_run, p_sem, p_print = _patches(
            config, run_sync_error=NetworkError("refused")
        )
        with p_discover, p_dotenv, p_load, p_client, p_run, p_sem as mock_sem, p_print:
            with pytest.raises(RuntimeError, match="Repository not reachable"):
                async with server_lifespan():
                    pass  # pragma: no cover
            mock_sem.assert_not_called()
