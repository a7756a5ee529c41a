"""Command line interface: ``tree-mirror <command>``.

Commands:
    status        Compare the branch head with the last synced revision
    sync          Sync the mirror (incremental when possible)
    verify        Report differences between the mirror and the remote
    apply         Verify, then apply the fixes after confirmation
    init-config   Write a starter .tree_mirror/config.yml

Exit codes: 0 on success, 1 on error, 2 when ``verify`` finds
discrepancies or ``apply`` is declined.
"""

import argparse
import json
import logging
import sys
from typing import Any

from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import discover_config_files, ensure_config, load_hierarchical_config
from .config_schema import build_config, yaml_fallbacks
from .core.client import GitHubClient
from .errors import MirrorSyncError
from .logger import setup_logging
from .mirror.engine import MirrorSyncEngine
from .mirror.models import ProgressEvent
from .mirror.reporter import (
    format_status,
    format_sync_result,
    format_verification_report,
    report_to_json,
    result_to_json,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_DISCREPANCIES = 2


def print_progress(event: ProgressEvent) -> None:
    """Write one progress event to stderr."""
    if event.current is not None and event.total is not None:
        print(
            f"[{event.stage}] ({event.current}/{event.total}) {event.message}",
            file=sys.stderr,
        )
    else:
        print(f"[{event.stage}] {event.message}", file=sys.stderr)


def resolve_config(args: argparse.Namespace) -> Config:
    """Merge CLI args, environment, .env and YAML config into a Config.

    Raises:
        ValueError: If required values are missing or invalid.
    """
    load_dotenv()
    fallbacks: dict[str, Any] | None = None
    if discover_config_files():
        fallbacks = yaml_fallbacks(build_config(load_hierarchical_config()))
    return load_config(
        repo_owner=args.owner,
        repo_name=args.repo,
        mirror_root=args.root,
        branch=args.branch,
        subtree=args.subtree,
        token=args.token,
        insecure=args.insecure,
        debug=args.debug,
        yaml_fallbacks=fallbacks,
    )


def build_engine(args: argparse.Namespace) -> MirrorSyncEngine:
    config = resolve_config(args)
    callback = None if args.quiet else print_progress
    return MirrorSyncEngine(
        GitHubClient(config), config, progress_callback=callback
    )


def _print_json(data: dict) -> None:
    print(json.dumps(data, indent=2))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_status(args: argparse.Namespace) -> int:
    status = build_engine(args).check_status()
    if args.json:
        _print_json(status.model_dump(mode="json"))
    else:
        print(format_status(status))
    return EXIT_OK


def cmd_sync(args: argparse.Namespace) -> int:
    engine = build_engine(args)
    result = engine.sync(full=args.full)
    if args.json:
        _print_json(result_to_json(result))
    else:
        print(format_sync_result(result))

    if not args.verify:
        return EXIT_OK
    report = engine.verify()
    if args.json:
        _print_json(report_to_json(report))
    else:
        print()
        print(format_verification_report(report))
    return EXIT_DISCREPANCIES if report.has_discrepancies else EXIT_OK


def cmd_verify(args: argparse.Namespace) -> int:
    report = build_engine(args).verify()
    if args.json:
        _print_json(report_to_json(report))
    else:
        print(format_verification_report(report))
    return EXIT_DISCREPANCIES if report.has_discrepancies else EXIT_OK


def _confirm(prompt: str) -> bool:
    if not sys.stdin.isatty():
        print(
            "Not a terminal; pass --yes to apply without confirmation.",
            file=sys.stderr,
        )
        return False
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def cmd_apply(args: argparse.Namespace) -> int:
    engine = build_engine(args)
    report = engine.verify()
    print(format_verification_report(report))
    if not report.has_discrepancies:
        return EXIT_OK

    if not args.yes and not _confirm("Apply these changes?"):
        print("Aborted; the mirror was not changed.")
        return EXIT_DISCREPANCIES

    result = engine.apply_fixes(report)
    print()
    print(format_sync_result(result))
    return EXIT_OK


def cmd_init_config(args: argparse.Namespace) -> int:
    path = ensure_config()
    print(f"Config file: {path}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tree-mirror",
        description="Keep a local directory in sync with a repository subtree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tree-mirror status
  tree-mirror sync
  tree-mirror sync --full --verify
  tree-mirror verify --json
  tree-mirror apply --yes

Settings come from CLI options, MIRROR_* environment variables, .env,
and .tree_mirror/config.yml, in that order of precedence.
        """,
    )
    parser.add_argument("--owner", help="Repository owner (MIRROR_REPO_OWNER)")
    parser.add_argument("--repo", help="Repository name (MIRROR_REPO_NAME)")
    parser.add_argument("--root", help="Local mirror directory (MIRROR_ROOT)")
    parser.add_argument("--branch", help="Branch to follow (MIRROR_BRANCH)")
    parser.add_argument("--subtree", help="Repository subtree (MIRROR_SUBTREE)")
    parser.add_argument("--token", help="API token (prefer MIRROR_TOKEN)")
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (development only)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Do not print progress"
    )
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Log line format (default: text)",
    )
    parser.add_argument(
        "--version", action="version", version=f"tree-mirror {__version__}"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_status = sub.add_parser("status", help="Show whether updates are available")
    p_status.add_argument("--json", action="store_true", help="JSON output")
    p_status.set_defaults(func=cmd_status)

    p_sync = sub.add_parser("sync", help="Sync the mirror")
    p_sync.add_argument(
        "--full", action="store_true", help="Compare every file instead of the change list"
    )
    p_sync.add_argument(
        "--verify", action="store_true", help="Run a verification scan afterwards"
    )
    p_sync.add_argument("--json", action="store_true", help="JSON output")
    p_sync.set_defaults(func=cmd_sync)

    p_verify = sub.add_parser("verify", help="Report differences from the remote")
    p_verify.add_argument("--json", action="store_true", help="JSON output")
    p_verify.set_defaults(func=cmd_verify)

    p_apply = sub.add_parser("apply", help="Verify and apply fixes")
    p_apply.add_argument(
        "-y", "--yes", action="store_true", help="Apply without asking"
    )
    p_apply.set_defaults(func=cmd_apply)

    p_init = sub.add_parser("init-config", help="Write a starter config file")
    p_init.set_defaults(func=cmd_init_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )
    try:
        return args.func(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except MirrorSyncError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
