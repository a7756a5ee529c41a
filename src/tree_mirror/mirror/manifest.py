"""Remote manifest: every blob of the mirrored subtree at one revision.

The trees API returns at most a bounded number of entries for a
recursive listing and flags the response as ``truncated`` instead of
failing.  When that happens the node is re-listed non-recursively and
each child tree is queued on an explicit work stack, so truncation is
handled at any depth without unbounded recursion.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import PathNotFoundError
from .models import ManifestEntry, RemoteCommit

if TYPE_CHECKING:
    from ..core.client import GitHubClient

logger = logging.getLogger(__name__)


def _join(base: str, name: str) -> str:
    return f"{base}/{name}" if base else name


class RemoteManifestFetcher:
    """Build the path -> blob id manifest of a remote subtree.

    Args:
        client: Remote API client.
    """

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    def fetch(
        self, subtree_path: str, revision: str
    ) -> list[ManifestEntry]:
        """List every blob under *subtree_path* at *revision*.

        Args:
            subtree_path: Slash-separated subtree, ``""`` for the root.
            revision: Branch name or commit SHA.

        Returns:
            Manifest entries sorted by path, relative to the subtree.

        Raises:
            NotFoundError: If the revision does not exist.
            PathNotFoundError: If a component of *subtree_path* is absent.
            NetworkError: On transport or API failure.
        """
        commit = self.client.get_commit(revision)
        return self.fetch_commit(subtree_path, commit)

    def fetch_commit(
        self, subtree_path: str, commit: RemoteCommit
    ) -> list[ManifestEntry]:
        """Like ``fetch`` for an already-resolved commit."""
        subtree_sha = self.resolve_subtree(commit.tree_sha, subtree_path)
        files = self.list_blobs(subtree_sha)
        logger.info(
            "Fetched manifest of '%s' at %s: %d files",
            subtree_path or "/",
            commit.sha[:12],
            len(files),
        )
        return [
            ManifestEntry(path=path, content_hash=sha)
            for path, sha in sorted(files.items())
        ]

    def resolve_subtree(self, root_tree_sha: str, subtree_path: str) -> str:
        """Walk *subtree_path* one component at a time from the root tree.

        Returns:
            The tree SHA of the subtree.

        Raises:
            PathNotFoundError: If a component is missing or not a tree.
        """
        current = root_tree_sha
        for part in (p for p in subtree_path.split("/") if p):
            listing = self.client.get_tree(current, recursive=False)
            match = next(
                (
                    entry
                    for entry in listing["tree"]
                    if entry.get("path") == part
                    and entry.get("type") == "tree"
                ),
                None,
            )
            if match is None:
                raise PathNotFoundError(part, subtree_path)
            current = match["sha"]
        return current

    def list_blobs(self, tree_sha: str) -> dict[str, str]:
        """Collect ``{relative_path: blob_sha}`` for a whole tree.

        Uses a work stack of ``(tree_sha, base_path)`` pairs; a truncated
        recursive listing is replaced by a non-recursive one whose child
        trees are pushed back onto the stack.
        """
        files: dict[str, str] = {}
        stack: list[tuple[str, str]] = [(tree_sha, "")]

        while stack:
            sha, base = stack.pop()
            listing = self.client.get_tree(sha, recursive=True)

            if not listing.get("truncated", False):
                for entry in listing["tree"]:
                    if entry.get("type") == "blob":
                        files[_join(base, entry["path"])] = entry["sha"]
                continue

            logger.debug(
                "Tree listing truncated at '%s', descending per subtree",
                base or "/",
            )
            shallow = self.client.get_tree(sha, recursive=False)
            for entry in shallow["tree"]:
                entry_path = _join(base, entry["path"])
                if entry.get("type") == "blob":
                    files[entry_path] = entry["sha"]
                elif entry.get("type") == "tree":
                    stack.append((entry["sha"], entry_path))

        return files
