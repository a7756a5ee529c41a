"""Schema of the YAML config file.

The file has three optional sections::

    remote:   # which repository subtree to follow
    mirror:   # where and how to mirror it
    logging:  # log level and file

Every field is optional; values missing here are taken from environment
variables or CLI arguments by ``config.load_config()``.

Usage:
    from tree_mirror.config_schema import build_config, yaml_fallbacks

    unified = build_config(load_hierarchical_config())
    config = load_config(yaml_fallbacks=yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """Repository coordinates and API endpoints."""

    owner: str | None = Field(default=None, description="Repository owner")
    name: str | None = Field(default=None, description="Repository name")
    branch: str | None = Field(default=None, description="Branch to follow")
    subtree: str | None = Field(
        default=None, description="Repository subtree to mirror"
    )
    token: str | None = Field(default=None, description="API bearer token")
    api_url: str | None = Field(default=None, description="REST API base URL")
    raw_url: str | None = Field(
        default=None, description="Raw content base URL"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )

    model_config = {"frozen": True}


class MirrorConfig(BaseModel):
    """Local mirror settings."""

    root: str | None = Field(default=None, description="Mirror directory")
    state_dir: str | None = Field(
        default=None, description="Directory holding the revision baseline"
    )
    reserved_dir: str | None = Field(
        default=None, description="Directory name the mirror never touches"
    )
    max_parallel_downloads: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Concurrent file downloads (1-32)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


class UnifiedConfig(BaseModel):
    """All config sections; ``UnifiedConfig()`` is always valid."""

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    mirror: MirrorConfig = Field(default_factory=MirrorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Construction and adapters
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Validate the merged YAML dict; missing sections get defaults."""
    if not raw_data:
        return UnifiedConfig()
    return UnifiedConfig(**raw_data)


def yaml_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten *unified* into the fallback dict ``load_config()`` expects.

    ``None`` values are dropped so they never shadow built-in defaults.
    """
    remote = unified.remote
    mirror = unified.mirror
    flat: dict[str, Any] = {
        "repo_owner": remote.owner,
        "repo_name": remote.name,
        "branch": remote.branch,
        "subtree": remote.subtree,
        "token": remote.token,
        "api_url": remote.api_url,
        "raw_url": remote.raw_url,
        "insecure": remote.insecure,
        "mirror_root": mirror.root,
        "state_dir": mirror.state_dir,
        "reserved_dir": mirror.reserved_dir,
        "max_parallel_downloads": mirror.max_parallel_downloads,
        "debug": mirror.debug,
    }
    return {k: v for k, v in flat.items() if v is not None}
