"""Exception hierarchy shared by the client, the sync engine and its surfaces.

The engine never inspects error messages: whether a failure triggers the
incremental-to-full fallback is decided by the exception type alone.
"""

from __future__ import annotations


class MirrorSyncError(Exception):
    """Base class for every error raised by tree_mirror."""


class FallbackRequired(MirrorSyncError):
    """Incremental sync cannot be trusted; run a full sync instead."""


class NetworkError(MirrorSyncError):
    """Transport or HTTP failure talking to the remote.

    Attributes:
        status_code: HTTP status, or ``None`` for transport errors.
        url: The request URL, when known.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class NotFoundError(NetworkError, FallbackRequired):
    """A referenced revision, tree or file does not exist remotely."""


class PathNotFoundError(NotFoundError):
    """A component of the configured subtree path is missing."""

    def __init__(self, component: str, subtree: str) -> None:
        super().__init__(
            f"Path component '{component}' of '{subtree}' not found in repository"
        )
        self.component = component
        self.subtree = subtree


class TruncatedResultError(FallbackRequired):
    """A change set hit the comparison limit and may be incomplete."""

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(
            f"Change set truncated: {count} files returned (limit {limit})"
        )
        self.count = count
        self.limit = limit


class FilesystemError(MirrorSyncError):
    """Local read/write/rename/delete failure."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class MirrorNotFoundError(FilesystemError):
    """The mirror root directory does not exist."""

    def __init__(self, root: str) -> None:
        super().__init__(f"Mirror directory not found: {root}", path=root)
