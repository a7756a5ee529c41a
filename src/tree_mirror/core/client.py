import logging
import threading
from typing import Any
from urllib.parse import quote

import requests

from ..config import Config
from ..errors import NetworkError, NotFoundError
from ..mirror.models import RemoteCommit

logger = logging.getLogger(__name__)

USER_AGENT = "tree-mirror"


class GitHubClient:
    """Read-only access to the commits, trees, compare and raw-content APIs."""

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.repo_api_url = self._get_repo_api_url()

    @property
    def session(self) -> requests.Session:
        """Accessor for the current thread's session."""
        return self._get_session()

    def _get_repo_api_url(self) -> str:
        return (
            f"{self.config.api_url.rstrip('/')}/repos/"
            f"{self.config.repo_owner}/{self.config.repo_name}"
        )

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["User-Agent"] = USER_AGENT
        session.headers["Accept"] = "application/vnd.github.v3+json"
        if self.config.token:
            session.headers["Authorization"] = f"Bearer {self.config.token}"
        session.verify = not self.config.insecure
        return session

    def _get(
        self, url: str, params: dict[str, str] | None = None
    ) -> requests.Response:
        """
        Issue a GET and translate failures into NetworkError / NotFoundError.
        """
        logger.debug("GET %s %s", url, params or "")
        try:
            response = self._get_session().get(
                url, params=params, timeout=(10, 60)
            )
        except requests.RequestException as exc:
            raise NetworkError(
                f"Request to {url} failed: {exc}", url=url
            ) from exc

        if response.status_code == 404:
            raise NotFoundError(
                f"Not found (HTTP 404): {url}", status_code=404, url=url
            )
        if not response.ok:
            raise NetworkError(
                f"GitHub API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
                url=url,
            )
        return response

    def _get_json(
        self, url: str, params: dict[str, str] | None = None
    ) -> Any:
        response = self._get(url, params)
        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON from {url}: {exc}",
                status_code=response.status_code,
                url=url,
            ) from exc

    def get_commit(self, ref: str) -> RemoteCommit:
        """
        Resolve a branch name or SHA to a commit.

        Args:
            ref: Branch, tag or commit SHA.

        Returns:
            RemoteCommit with the commit SHA, its root tree SHA and committer date.

        Raises:
            NotFoundError: If the ref does not exist.
            NetworkError: On transport or API failure.
        """
        url = f"{self.repo_api_url}/commits/{quote(ref, safe='')}"
        data = self._get_json(url)
        try:
            return RemoteCommit(
                sha=data["sha"],
                tree_sha=data["commit"]["tree"]["sha"],
                date=data["commit"].get("committer", {}).get("date"),
            )
        except (KeyError, TypeError) as exc:
            raise NetworkError(
                f"Unexpected commit response for '{ref}': missing {exc}",
                url=url,
            ) from exc

    def get_tree(self, tree_sha: str, recursive: bool = False) -> dict[str, Any]:
        """
        List a git tree.

        Returns:
            Decoded response with ``tree`` (list of entries with ``path``,
            ``type`` and ``sha``) and ``truncated`` keys.
        """
        url = f"{self.repo_api_url}/git/trees/{tree_sha}"
        params = {"recursive": "1"} if recursive else None
        data = self._get_json(url, params)
        if not isinstance(data, dict) or not isinstance(
            data.get("tree"), list
        ):
            raise NetworkError(
                f"Unexpected tree response for {tree_sha}", url=url
            )
        return data

    def compare(self, base: str, head: str) -> dict[str, Any]:
        """
        Compare two revisions.

        Returns:
            Decoded compare response; ``files`` may be absent when nothing changed.
        """
        url = f"{self.repo_api_url}/compare/{base}...{head}"
        data = self._get_json(url)
        if not isinstance(data, dict):
            raise NetworkError(
                f"Unexpected compare response for {base}...{head}", url=url
            )
        return data

    def raw_url(self, relative_path: str, ref: str) -> str:
        """Build the raw-content URL for a path inside the configured subtree."""
        repo_path = (
            f"{self.config.subtree}/{relative_path}"
            if self.config.subtree
            else relative_path
        )
        return (
            f"{self.config.raw_url.rstrip('/')}/{self.config.repo_owner}/"
            f"{self.config.repo_name}/{quote(ref, safe='')}/{quote(repo_path)}"
        )

    def download_raw(self, relative_path: str, ref: str) -> bytes:
        """
        Fetch the content of one file of the subtree at *ref*.

        Raises:
            NotFoundError: If the file does not exist at *ref*.
            NetworkError: On transport or HTTP failure.
        """
        return self._get(self.raw_url(relative_path, ref)).content

    def validate_connection(self) -> str:
        """
        Resolve the configured branch; returns its head SHA if reachable.
        """
        return self.get_commit(self.config.branch).sha
