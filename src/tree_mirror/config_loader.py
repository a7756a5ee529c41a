"""
YAML config file discovery and loading.

Config files are optional.  When several exist they are merged with
"project wins" semantics; values may reference environment variables
(``${VAR}`` / ``${VAR:-default}``) and pull in other files with
``!include``.

Usage:
    from tree_mirror.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TREE_MIRROR_CONFIG"
PROJECT_CONFIG_DIR = ".tree_mirror"
GLOBAL_CONFIG_DIR = Path(".config") / "tree_mirror"

# ---------------------------------------------------------------------------
# Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty VAR expands to *default*, or to ``""`` when there is
    no default.  An unterminated ``${`` is left as is.
    """

    def _expand(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) if match.group(2) is not None else ""

    return _ENV_VAR_PATTERN.sub(_expand, value)


def _interpolate_tree(node: Any) -> Any:
    if isinstance(node, str):
        return interpolate_env_vars(node)
    if isinstance(node, dict):
        return {key: _interpolate_tree(val) for key, val in node.items()}
    if isinstance(node, list):
        return [_interpolate_tree(item) for item in node]
    return node


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class IncludeLoader(yaml.SafeLoader):
    """``SafeLoader`` with an ``!include`` tag.

    A subclass keeps the tag off the global ``yaml.SafeLoader``.  Each
    instance carries the chain of files being loaded so that circular
    includes are reported instead of recursing forever.
    """

    include_chain: list[Path]


def _construct_include(loader: IncludeLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by ``!include <path>``.

    Relative paths are resolved against the including file's directory.
    """
    target = Path(loader.construct_scalar(node)).expanduser()
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    chain = loader.include_chain
    if target in chain:
        cycle = " -> ".join(str(p) for p in [*chain, target])
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {chain[-1]})"
        )
    return load_yaml_file(target, _chain=[*chain, target])


IncludeLoader.add_constructor("!include", _construct_include)


def load_yaml_file(path: Path, *, _chain: list[Path] | None = None) -> Any:
    """Parse one YAML file, following ``!include`` tags."""
    path = path.resolve()
    with open(path, encoding="utf-8") as fh:
        loader = IncludeLoader(fh)
        loader.include_chain = _chain or [path]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def candidate_config_paths() -> list[Path]:
    """All places a config file may live, highest precedence first.

    1. ``$TREE_MIRROR_CONFIG``
    2. ``./.tree_mirror/config.yml``
    3. ``./.tree_mirror/config.yaml``
    4. ``~/.config/tree_mirror/config.yml``
    """
    candidates: list[Path] = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(Path.home() / GLOBAL_CONFIG_DIR / "config.yml")
    return candidates


def discover_config_files() -> list[Path]:
    """Existing config files, highest precedence first."""
    return [p for p in candidate_config_paths() if p.exists()]


# ---------------------------------------------------------------------------
# Starter file
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# tree-mirror configuration
#
# Every value can also come from the environment:
#   MIRROR_REPO_OWNER, MIRROR_REPO_NAME, MIRROR_BRANCH, MIRROR_SUBTREE,
#   MIRROR_ROOT, MIRROR_TOKEN (or GITHUB_TOKEN), MIRROR_INSECURE
#
# remote:
#   owner: example-org
#   name: example-repo
#   branch: main
#   subtree: assets/textures
#   token: ${GITHUB_TOKEN}
#
# mirror:
#   root: ~/mirror
#   reserved_dir: user-customs
#   max_parallel_downloads: 1
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter one if none exists.

    Args:
        target: Where to create the starter file; defaults to
            ``./.tree_mirror/config.yml``.

    Returns:
        Path to the existing or newly created file.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge every discovered config file.

    Files are applied from lowest to highest precedence; a top-level key
    in a higher-precedence file replaces the whole section.  Env var
    interpolation runs on the merged result.

    Returns:
        The merged dict, or ``{}`` when no config file exists.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        data = load_yaml_file(path)
        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has a non-mapping root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_tree(merged)
