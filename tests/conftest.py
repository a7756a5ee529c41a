"""Shared pytest fixtures for tree-mirror tests."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any

import pytest

from tree_mirror.config import Config
from tree_mirror.errors import NotFoundError
from tree_mirror.mirror.hashing import blob_hash
from tree_mirror.mirror.models import RemoteCommit


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that call the real GitHub API",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# In-memory remote
# ---------------------------------------------------------------------------


def _as_bytes(content: bytes | str) -> bytes:
    return content.encode("utf-8") if isinstance(content, str) else content


class FakeGitHubClient:
    """GitHubClient replacement backed by in-memory commits.

    ``commit(files)`` records a new branch head whose tree holds *files*
    (repository-root paths).  Trees, compares and raw downloads are
    derived from those snapshots the way the real API presents them.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.snapshots: dict[str, dict[str, bytes]] = {}
        self.commit_trees: dict[str, str] = {}
        self.trees: dict[str, list[dict[str, Any]]] = {}
        self.head: str | None = None
        self.recursive_limit: int | None = None
        self.compare_override: list[dict[str, Any]] | None = None
        self.downloads: list[tuple[str, str]] = []
        self.calls: list[str] = []
        self._counter = 0

    # -- building ----------------------------------------------------------

    def commit(self, files: dict[str, bytes | str]) -> str:
        self._counter += 1
        sha = f"{self._counter:040x}"
        snapshot = {path: _as_bytes(data) for path, data in files.items()}
        self.snapshots[sha] = snapshot
        self.commit_trees[sha] = self._build_tree(snapshot)
        self.head = sha
        return sha

    def _build_tree(self, files: dict[str, bytes]) -> str:
        children: dict[str, dict[str, bytes]] = {}
        entries: list[dict[str, Any]] = []
        for path, data in sorted(files.items()):
            name, _, rest = path.partition("/")
            if rest:
                children.setdefault(name, {})[rest] = data
            else:
                entries.append(
                    {"path": name, "type": "blob", "sha": blob_hash(data)}
                )
        for name, sub in sorted(children.items()):
            entries.append(
                {"path": name, "type": "tree", "sha": self._build_tree(sub)}
            )
        digest = hashlib.sha1(repr(sorted(
            (e["path"], e["sha"]) for e in entries
        )).encode()).hexdigest()
        tree_sha = f"t{digest[:39]}"
        self.trees[tree_sha] = entries
        return tree_sha

    # -- GitHubClient surface ---------------------------------------------

    def _resolve(self, ref: str) -> str:
        if ref == self.config.branch and self.head is not None:
            return self.head
        if ref in self.snapshots:
            return ref
        raise NotFoundError(f"Not found (HTTP 404): commits/{ref}", status_code=404)

    def get_commit(self, ref: str) -> RemoteCommit:
        self.calls.append(f"commit:{ref}")
        sha = self._resolve(ref)
        return RemoteCommit(
            sha=sha, tree_sha=self.commit_trees[sha], date="2026-01-01T00:00:00Z"
        )

    def get_tree(self, tree_sha: str, recursive: bool = False) -> dict[str, Any]:
        self.calls.append(f"tree:{tree_sha}:{int(recursive)}")
        if tree_sha not in self.trees:
            raise NotFoundError(f"Not found (HTTP 404): trees/{tree_sha}", status_code=404)
        if not recursive:
            return {"tree": list(self.trees[tree_sha]), "truncated": False}

        listing: list[dict[str, Any]] = []
        stack = [(tree_sha, "")]
        while stack:
            sha, base = stack.pop(0)
            for entry in self.trees[sha]:
                path = f"{base}/{entry['path']}" if base else entry["path"]
                listing.append({**entry, "path": path})
                if entry["type"] == "tree":
                    stack.append((entry["sha"], path))

        if self.recursive_limit is not None and len(listing) > self.recursive_limit:
            return {"tree": listing[: self.recursive_limit], "truncated": True}
        return {"tree": listing, "truncated": False}

    def compare(self, base: str, head: str) -> dict[str, Any]:
        self.calls.append(f"compare:{base}...{head}")
        old = self.snapshots[self._resolve(base)]
        new = self.snapshots[self._resolve(head)]
        if self.compare_override is not None:
            return {"files": self.compare_override}

        removed = {p: d for p, d in old.items() if p not in new}
        files: list[dict[str, Any]] = []
        for path in sorted(new):
            data = new[path]
            if path not in old:
                source = next(
                    (p for p, d in removed.items() if d == data), None
                )
                if source is not None:
                    del removed[source]
                    files.append({
                        "filename": path,
                        "previous_filename": source,
                        "status": "renamed",
                        "sha": blob_hash(data),
                    })
                else:
                    files.append({
                        "filename": path, "status": "added", "sha": blob_hash(data)
                    })
            elif old[path] != data:
                files.append({
                    "filename": path, "status": "modified", "sha": blob_hash(data)
                })
        for path in sorted(removed):
            files.append({"filename": path, "status": "removed", "sha": None})
        return {"files": files}

    def download_raw(self, relative_path: str, ref: str) -> bytes:
        repo_path = (
            f"{self.config.subtree}/{relative_path}"
            if self.config.subtree
            else relative_path
        )
        self.downloads.append((relative_path, ref))
        snapshot = self.snapshots[self._resolve(ref)]
        if repo_path not in snapshot:
            raise NotFoundError(f"Not found (HTTP 404): {repo_path}", status_code=404)
        return snapshot[repo_path]

    def validate_connection(self) -> str:
        return self.get_commit(self.config.branch).sha


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mirror_root(tmp_path: Path) -> Path:
    """An existing, empty mirror directory."""
    root = tmp_path / "mirror"
    root.mkdir()
    return root


@pytest.fixture
def mock_config(mirror_root: Path) -> Config:
    """Config mirroring the ``textures`` subtree of example/assets."""
    return Config(
        repo_owner="example",
        repo_name="assets",
        mirror_root=str(mirror_root),
        subtree="textures",
    )


@pytest.fixture
def remote(mock_config: Config) -> FakeGitHubClient:
    """An in-memory remote repository."""
    return FakeGitHubClient(mock_config)


def write_files(root: Path, files: dict[str, bytes | str]) -> None:
    """Create *files* (relative paths) under *root*."""
    for rel, data in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_as_bytes(data))


def read_tree(root: Path) -> dict[str, bytes]:
    """All regular files under *root*, excluding the state directory."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file() and ".tree_mirror" not in p.relative_to(root).parts
    }

