"""Relative-path helpers: the disabled overlay transform and exclusions.

All paths handled here are relative, slash-separated mirror paths
(``"ui/icons/logo.png"``), never OS paths.

A file is *disabled* locally by prefixing its basename with ``-``::

    disabled_path("ui/icons/logo.png") == "ui/icons/-logo.png"
    enabled_path("ui/icons/-logo.png") == "ui/icons/logo.png"
"""

from __future__ import annotations

from .models import Overlay

DISABLE_MARKER = "-"
HIDDEN_MARKER = "."
DEFAULT_RESERVED_DIR = "user-customs"


def split_path(path: str) -> tuple[str, str]:
    """Split *path* into ``(directory_with_trailing_slash, basename)``."""
    pos = path.rfind("/")
    if pos == -1:
        return "", path
    return path[: pos + 1], path[pos + 1 :]


def is_disabled_name(name: str) -> bool:
    """Return ``True`` if a basename carries the disable marker."""
    return name.startswith(DISABLE_MARKER)


def disabled_path(path: str) -> str:
    """Return the disabled variant of a canonical path."""
    directory, name = split_path(path)
    return f"{directory}{DISABLE_MARKER}{name}"


def enabled_path(path: str) -> str | None:
    """Return the canonical path for a disabled path.

    Returns:
        The path with the marker removed from the basename, or ``None``
        when the basename is not disabled.
    """
    directory, name = split_path(path)
    if not is_disabled_name(name) or name == DISABLE_MARKER:
        return None
    return f"{directory}{name[len(DISABLE_MARKER):]}"


def actual_path(canonical: str, overlay: Overlay) -> str:
    """Return the on-disk relative path for *canonical* in *overlay* state."""
    if overlay == Overlay.DISABLED:
        return disabled_path(canonical)
    return canonical


def is_excluded(
    path: str, reserved_dir: str = DEFAULT_RESERVED_DIR
) -> bool:
    """Return ``True`` for paths the mirror must never touch.

    A path is excluded when any component is hidden (starts with ``.``)
    or equals the reserved user-customisations directory name.
    """
    for component in path.split("/"):
        if component.startswith(HIDDEN_MARKER):
            return True
        if reserved_dir and component == reserved_dir:
            return True
    return False


def strip_subtree(path: str, subtree: str) -> str | None:
    """Make a repository-root path relative to *subtree*.

    Returns:
        The relative path, or ``None`` if *path* lies outside *subtree*.
    """
    if not subtree:
        return path
    prefix = f"{subtree}/"
    if not path.startswith(prefix) or len(path) == len(prefix):
        return None
    return path[len(prefix) :]
