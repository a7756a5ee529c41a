"""Persistence of the last synced revision.

The baseline lives in ``revision.json`` inside the state directory
(``<mirror_root>/.tree_mirror`` by default, which the scanner ignores as
hidden).  Writes go to a temporary file that is then ``os.replace``-d
over the target, so a crash never leaves a half-written baseline.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from ..errors import FilesystemError

logger = logging.getLogger(__name__)

STATE_FILE_NAME = "revision.json"
STATE_VERSION = 1


class RevisionStore:
    """Load and save the revision baseline.

    Args:
        state_dir: Directory holding ``revision.json``.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir

    @property
    def path(self) -> Path:
        return self._state_dir / STATE_FILE_NAME

    def load(self) -> dict:
        """Load the state dict.

        Returns:
            The stored state, or an empty ``version=1`` state when no
            baseline has been recorded yet.

        Raises:
            FilesystemError: If the file exists but cannot be parsed.
        """
        if not self.path.exists():
            return {
                "version": STATE_VERSION,
                "last_sync": None,
                "last_revision": None,
            }
        try:
            with open(self.path, encoding="utf-8") as fh:
                state = json.load(fh)
        except (OSError, ValueError) as exc:
            raise FilesystemError(
                f"Cannot read sync state {self.path}: {exc}",
                path=str(self.path),
            ) from exc
        if not isinstance(state, dict):
            raise FilesystemError(
                f"Malformed sync state {self.path}", path=str(self.path)
            )
        return state

    def save(self, state: dict) -> None:
        """Persist *state* atomically, stamping ``last_sync``."""
        state["last_sync"] = datetime.now(timezone.utc).isoformat()
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self._state_dir), suffix=".tmp"
            )
        except OSError as exc:
            raise FilesystemError(
                f"Cannot write sync state in {self._state_dir}: {exc}",
                path=str(self._state_dir),
            ) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.debug("Temporary state file %s already gone", tmp_path)
            raise

    def get_last_revision(self) -> str | None:
        return self.load().get("last_revision")

    def set_last_revision(self, revision: str) -> None:
        state = self.load()
        state["version"] = STATE_VERSION
        state["last_revision"] = revision
        self.save(state)
        logger.debug("Recorded baseline revision %s", revision)
