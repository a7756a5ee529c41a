"""Tests for the tree-mirror command line interface."""

import io
import json

import pytest

from conftest import read_tree, write_files
from tree_mirror import cli


class _Terminal(io.StringIO):
    def isatty(self):
        return True


@pytest.fixture
def run(remote, mirror_root, tmp_path, monkeypatch):
    """Invoke ``cli.main`` against the in-memory remote."""
    for name in ("MIRROR_REPO_OWNER", "MIRROR_REPO_NAME", "MIRROR_ROOT",
                 "MIRROR_SUBTREE", "MIRROR_BRANCH", "MIRROR_TOKEN", "GITHUB_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("TREE_MIRROR_CONFIG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "GitHubClient", lambda config: remote)

    def _run(*argv):
        return cli.main([
            "--owner", "example",
            "--repo", "assets",
            "--root", str(mirror_root),
            "--subtree", "textures",
            *argv,
        ])

    return _run


class TestStatus:
    def test_never_synced(self, run, remote, capsys):
        remote.commit({"textures/a.png": "a"})
        assert run("status") == cli.EXIT_OK
        out = capsys.readouterr().out
        assert "Updates available." in out

    def test_json(self, run, remote, capsys):
        head = remote.commit({"textures/a.png": "a"})
        assert run("status", "--json") == cli.EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["latest_revision"] == head
        assert data["has_changes"] is True


class TestSync:
    def test_sync_prints_summary_and_progress(self, run, remote, mirror_root, capsys):
        remote.commit({"textures/a.png": "a"})
        assert run("sync") == cli.EXIT_OK
        captured = capsys.readouterr()
        assert "Full sync to" in captured.out
        assert "[downloading] (1/1)" in captured.err
        assert read_tree(mirror_root) == {"a.png": b"a"}

    def test_quiet_suppresses_progress(self, run, remote, capsys):
        remote.commit({"textures/a.png": "a"})
        assert run("-q", "sync") == cli.EXIT_OK
        assert "[downloading]" not in capsys.readouterr().err

    def test_sync_json(self, run, remote, capsys):
        remote.commit({"textures/a.png": "a"})
        run("-q", "sync", "--json")
        assert json.loads(capsys.readouterr().out)["mode"] == "full"

    def test_sync_with_clean_verify(self, run, remote, capsys):
        remote.commit({"textures/a.png": "a"})
        assert run("-q", "sync", "--verify") == cli.EXIT_OK
        assert "Mirror matches remote." in capsys.readouterr().out

    def test_missing_mirror(self, run, remote, mirror_root, capsys):
        mirror_root.rmdir()
        assert run("sync") == cli.EXIT_ERROR
        assert "Mirror directory not found" in capsys.readouterr().err
        assert remote.calls == []


class TestVerifyAndApply:
    def test_verify_exit_code(self, run, remote, mirror_root, capsys):
        remote.commit({"textures/a.png": "a"})
        write_files(mirror_root, {"extra.png": "x"})
        assert run("-q", "verify") == cli.EXIT_DISCREPANCIES
        out = capsys.readouterr().out
        assert "To download (1):" in out
        assert "To delete (1):" in out
        assert (mirror_root / "extra.png").exists()

    def test_verify_json(self, run, remote, capsys):
        remote.commit({"textures/a.png": "a"})
        run("-q", "verify", "--json")
        data = json.loads(capsys.readouterr().out)
        assert data["files_to_download"] == [{"path": "a.png", "to_disabled": False}]

    def test_apply_yes(self, run, remote, mirror_root, capsys):
        remote.commit({"textures/a.png": "a"})
        assert run("-q", "apply", "--yes") == cli.EXIT_OK
        assert "Verification fixes applied" in capsys.readouterr().out
        assert read_tree(mirror_root) == {"a.png": b"a"}

    def test_apply_without_terminal_declines(self, run, remote, mirror_root, monkeypatch, capsys):
        remote.commit({"textures/a.png": "a"})
        monkeypatch.setattr("sys.stdin", io.StringIO())
        assert run("-q", "apply") == cli.EXIT_DISCREPANCIES
        assert "Aborted" in capsys.readouterr().out
        assert read_tree(mirror_root) == {}

    def test_apply_confirmed(self, run, remote, mirror_root, monkeypatch):
        remote.commit({"textures/a.png": "a"})
        monkeypatch.setattr("sys.stdin", _Terminal())
        monkeypatch.setattr("builtins.input", lambda prompt: "y")
        assert run("-q", "apply") == cli.EXIT_OK
        assert read_tree(mirror_root) == {"a.png": b"a"}

    def test_apply_nothing_to_do(self, run, remote, mirror_root, capsys):
        remote.commit({"textures/a.png": "a"})
        write_files(mirror_root, {"a.png": "a"})
        assert run("-q", "apply") == cli.EXIT_OK
        assert "No changes needed" in capsys.readouterr().out


class TestConfiguration:
    def test_missing_owner(self, tmp_path, monkeypatch, capsys):
        for name in ("MIRROR_REPO_OWNER", "TREE_MIRROR_CONFIG"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.chdir(tmp_path)
        assert cli.main(["status"]) == cli.EXIT_ERROR
        assert "Configuration error" in capsys.readouterr().err

    def test_init_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.delenv("TREE_MIRROR_CONFIG", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.chdir(tmp_path)
        assert cli.main(["init-config"]) == cli.EXIT_OK
        assert (tmp_path / ".tree_mirror" / "config.yml").exists()
        assert "Config file:" in capsys.readouterr().out

    def test_yaml_config_used(self, remote, mirror_root, tmp_path, monkeypatch):
        for name in ("MIRROR_REPO_OWNER", "MIRROR_REPO_NAME", "MIRROR_ROOT",
                     "MIRROR_SUBTREE", "TREE_MIRROR_CONFIG"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.chdir(tmp_path)
        write_files(tmp_path, {".tree_mirror/config.yml": (
            "remote:\n  owner: example\n  name: assets\n  subtree: textures\n"
            f"mirror:\n  root: {mirror_root}\n"
        )})
        seen = []
        monkeypatch.setattr(
            cli, "GitHubClient", lambda config: seen.append(config) or remote
        )
        remote.commit({"textures/a.png": "a"})

        assert cli.main(["-q", "sync"]) == cli.EXIT_OK
        assert seen[0].subtree == "textures"
        assert read_tree(mirror_root) == {"a.png": b"a"}
