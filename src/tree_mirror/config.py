"""Configuration for the mirror engine, CLI and MCP server.

Reads remote and mirror settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    MIRROR_REPO_OWNER: Repository owner (required)
    MIRROR_REPO_NAME: Repository name (required)
    MIRROR_ROOT: Local mirror directory (required)
    MIRROR_BRANCH: Branch to follow (optional, default: main)
    MIRROR_SUBTREE: Repository subtree to mirror (optional, default: repository root)
    MIRROR_TOKEN: Bearer token for API requests (optional, falls back to GITHUB_TOKEN)
    MIRROR_API_URL: REST API base URL (optional, default: https://api.github.com)
    MIRROR_RAW_URL: Raw content base URL (optional, default: https://raw.githubusercontent.com)
    MIRROR_INSECURE: Skip SSL verification (optional, default: false)
    MIRROR_MAX_PARALLEL_DOWNLOADS: Concurrent downloads (optional, default: 1)
    MIRROR_STATE_DIR: Baseline state directory (optional, default: <root>/.tree_mirror)
    MIRROR_RESERVED_DIR: Directory name never touched (optional, default: user-customs)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_RAW_URL = "https://raw.githubusercontent.com"
DEFAULT_BRANCH = "main"
DEFAULT_RESERVED_DIR = "user-customs"
STATE_DIR_NAME = ".tree_mirror"


@dataclass
class Config:
    repo_owner: str
    repo_name: str
    mirror_root: str
    branch: str = DEFAULT_BRANCH
    subtree: str = ""
    token: str | None = None
    api_url: str = DEFAULT_API_URL
    raw_url: str = DEFAULT_RAW_URL
    insecure: bool = False
    debug: bool = False
    max_parallel_downloads: int = 1
    state_dir: str | None = None
    reserved_dir: str = DEFAULT_RESERVED_DIR

    @property
    def mirror_path(self) -> Path:
        return Path(self.mirror_root).expanduser()

    @property
    def state_path(self) -> Path:
        """Directory holding the revision baseline."""
        if self.state_dir:
            return Path(self.state_dir).expanduser()
        return self.mirror_path / STATE_DIR_NAME


def _validate_url(name: str, value: str) -> str:
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid {name} '{value}': must start with http:// or https://"
        )
    if not urlparse(value).hostname:
        raise ValueError(
            f"Invalid {name} '{value}': URL must include a hostname"
        )
    return value.removesuffix("/")


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Normalises URLs (trailing slash) and the subtree (surrounding
    slashes) in place.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a URL, repository coordinate or path is invalid.
    """
    config.api_url = _validate_url("API URL", config.api_url)
    config.raw_url = _validate_url("raw content URL", config.raw_url)

    for label, value in (
        ("repository owner", config.repo_owner),
        ("repository name", config.repo_name),
    ):
        if not value.strip():
            raise ValueError(
                f"The {label} cannot be empty. Set MIRROR_REPO_OWNER and MIRROR_REPO_NAME."
            )
        if "/" in value:
            raise ValueError(
                f"Invalid {label} '{value}': must not contain '/'"
            )
    config.repo_owner = config.repo_owner.strip()
    config.repo_name = config.repo_name.strip()

    if not config.branch.strip():
        raise ValueError("Branch cannot be empty.")

    if not config.mirror_root.strip():
        raise ValueError(
            "Mirror root cannot be empty. Set MIRROR_ROOT environment variable."
        )

    if config.state_dir:
        root = config.mirror_path.resolve()
        state = config.state_path.resolve()
        if state.is_relative_to(root):
            # Only hidden or reserved paths are invisible to the scanner.
            parts = state.relative_to(root).parts
            if not any(
                part.startswith(".") or part == config.reserved_dir
                for part in parts
            ):
                raise ValueError(
                    f"Invalid state directory '{config.state_dir}': inside the mirror "
                    "root it must be hidden (start with '.') or under the reserved "
                    f"directory '{config.reserved_dir}'"
                )

    config.subtree = config.subtree.strip().strip("/")
    if ".." in config.subtree.split("/"):
        raise ValueError(
            f"Invalid subtree '{config.subtree}': '..' is not allowed"
        )

    if not (1 <= config.max_parallel_downloads <= 32):
        raise ValueError(
            f"Invalid max_parallel_downloads {config.max_parallel_downloads}: must be between 1 and 32"
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def load_config(
    repo_owner: str | None = None,
    repo_name: str | None = None,
    mirror_root: str | None = None,
    branch: str | None = None,
    subtree: str | None = None,
    token: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        repo_owner: Override repository owner.
        repo_name: Override repository name.
        mirror_root: Override local mirror directory.
        branch: Override branch.
        subtree: Override repository subtree.
        token: Override API token.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict of values from the YAML config file
            (see ``config_schema.yaml_fallbacks``).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If required config is missing after checking all
            sources, or a value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default/error ---

    final_owner = (
        repo_owner or os.getenv("MIRROR_REPO_OWNER") or fb.get("repo_owner")
    )
    if not final_owner:
        raise ValueError(
            "Repository owner not found. Set MIRROR_REPO_OWNER environment variable, "
            "pass --owner CLI argument, or add 'remote.owner' to config.yml."
        )

    final_name = (
        repo_name or os.getenv("MIRROR_REPO_NAME") or fb.get("repo_name")
    )
    if not final_name:
        raise ValueError(
            "Repository name not found. Set MIRROR_REPO_NAME environment variable, "
            "pass --repo CLI argument, or add 'remote.name' to config.yml."
        )

    final_root = mirror_root or os.getenv("MIRROR_ROOT") or fb.get("mirror_root")
    if not final_root:
        raise ValueError(
            "Mirror root not found. Set MIRROR_ROOT environment variable, "
            "pass --root CLI argument, or add 'mirror.root' to config.yml."
        )

    final_branch = (
        branch or os.getenv("MIRROR_BRANCH") or fb.get("branch") or DEFAULT_BRANCH
    )

    if subtree is not None:
        final_subtree = subtree
    else:
        final_subtree = os.getenv("MIRROR_SUBTREE") or fb.get("subtree") or ""

    final_token = (
        token
        or os.getenv("MIRROR_TOKEN")
        or os.getenv("GITHUB_TOKEN")
        or fb.get("token")
        or None
    )

    final_api_url = (
        os.getenv("MIRROR_API_URL") or fb.get("api_url") or DEFAULT_API_URL
    )
    final_raw_url = (
        os.getenv("MIRROR_RAW_URL") or fb.get("raw_url") or DEFAULT_RAW_URL
    )
    final_state_dir = os.getenv("MIRROR_STATE_DIR") or fb.get("state_dir")
    final_reserved = (
        os.getenv("MIRROR_RESERVED_DIR")
        or fb.get("reserved_dir")
        or DEFAULT_RESERVED_DIR
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    if insecure:
        final_insecure = True
    else:
        env_insecure = get_bool_env("MIRROR_INSECURE")
        if env_insecure is not None:
            final_insecure = env_insecure
        else:
            final_insecure = bool(fb.get("insecure", False))

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("MIRROR_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    parallel_raw = os.getenv("MIRROR_MAX_PARALLEL_DOWNLOADS")
    if parallel_raw is not None:
        try:
            final_parallel = int(parallel_raw)
        except ValueError:
            raise ValueError(
                f"Invalid MIRROR_MAX_PARALLEL_DOWNLOADS '{parallel_raw}': must be a number between 1 and 32"
            ) from None
    elif "max_parallel_downloads" in fb:
        final_parallel = int(fb["max_parallel_downloads"])
    else:
        final_parallel = 1

    config = Config(
        repo_owner=final_owner,
        repo_name=final_name,
        mirror_root=final_root,
        branch=final_branch.strip(),
        subtree=final_subtree,
        token=final_token.strip() if final_token else None,
        api_url=final_api_url,
        raw_url=final_raw_url,
        insecure=final_insecure,
        debug=final_debug,
        max_parallel_downloads=final_parallel,
        state_dir=final_state_dir,
        reserved_dir=final_reserved,
    )

    validate_config(config)

    return config
