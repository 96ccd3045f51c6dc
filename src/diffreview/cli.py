from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv

from diffreview import __version__
from diffreview.client import error_output, submit_review
from diffreview.config import ConfigStore, ReviewConfig, load_config
from diffreview.errors import ConfigError, DiffReviewError, ReviewApiError
from diffreview.git import GitRunner
from diffreview.models import CollectionFailure, ReviewPayload
from diffreview.payload import display_payload
from diffreview.prepare import collect_against_base, collect_uncommitted
from diffreview.renderer import render_review, render_submission_summary

logger = logging.getLogger("diffreview")

_EPILOG = """\
Examples:
  diffreview review                   Review committed changes (auto-detect base)
  diffreview review main              Review changes against main branch
  diffreview stg --dry-run            Preview staged changes review
  diffreview diff                     Review unstaged changes
  diffreview review-all --untracked   Review every uncommitted change, new files too
  diffreview review main --json       Output raw JSON (for CI/CD integration)

Configuration:
  diffreview config --key YOUR_KEY
  diffreview config --endpoint https://example.com/api/review
"""


class _LevelPrefixFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.WARNING:
            return f"{record.levelname}: {message}"
        return message


def _configure_logging(verbose: bool) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_LevelPrefixFormatter("%(message)s"))
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _load_env(directory: Path | None) -> None:
    # Looked up from the working directory, not from the installed package.
    if directory is not None:
        load_dotenv(directory / ".env")
    else:
        load_dotenv(find_dotenv(usecwd=True))


def _git(args: argparse.Namespace) -> GitRunner:
    return GitRunner(args.directory)


def _repo_root(args: argparse.Namespace) -> Path:
    try:
        return asyncio.run(_git(args).repo_root())
    except DiffReviewError:
        return (args.directory or Path.cwd()).resolve()


def _require_api(config: ReviewConfig) -> tuple[str, str] | None:
    try:
        return config.require_api()
    except ConfigError as exc:
        logger.error("%s", exc)
        if exc.hint:
            logger.info("%s", exc.hint)
        return None


def _confirm(message: str) -> bool:
    if not sys.stdin.isatty():
        raise SystemExit(
            "Cannot ask for confirmation in non-interactive mode. "
            "Rerun with --yes or --json."
        )
    answer = input(message).strip().lower()
    return answer in {"", "y", "yes"}


def _handle_failure(result: CollectionFailure) -> int:
    if result.no_changes:
        return 0
    logger.error("Could not proceed with review due to errors during analysis.")
    return 1


def _deliver(
    args: argparse.Namespace,
    payload: ReviewPayload,
    credentials: tuple[str, str] | None,
    *,
    uncommitted: bool,
) -> int:
    if args.dry_run:
        logger.info("Dry Run - Payload that would be sent:")
        print(json.dumps(display_payload(payload), indent=2))
        logger.info("Run without --dry-run to send to API")
        logger.info("Diffs and content are truncated in dry-run for readability")
        return 0

    if credentials is None:
        return 1
    api_key, endpoint = credentials

    if not args.json and not args.yes:
        sys.stderr.write(render_submission_summary(payload, uncommitted=uncommitted))
        if not _confirm("Proceed with AI review? (Y/n): "):
            logger.info("Review cancelled.")
            return 0

    logger.info("Submitting review to the AI...")
    try:
        data = asyncio.run(
            submit_review(payload, api_key=api_key, endpoint=endpoint)
        )
    except ReviewApiError as exc:
        logger.error("An error occurred during the API request: %s", exc)
        if exc.status_code is not None:
            logger.error("Status: %s", exc.status_code)
            logger.error("Data: %s", json.dumps(exc.data, indent=2))
        if args.json:
            print(json.dumps(error_output(exc), indent=2))
        return 1

    logger.info("Review completed!")
    if args.json:
        print(json.dumps(data, indent=2))
    else:
        print(render_review(data, repo_root=_repo_root(args)), end="")
    return 0


def _prepare_run(
    args: argparse.Namespace,
) -> tuple[ReviewConfig, tuple[str, str] | None] | None:
    try:
        config = load_config()
    except ConfigError as exc:
        logger.error("%s", exc)
        return None
    if args.dry_run:
        return config, None
    credentials = _require_api(config)
    if credentials is None:
        return None
    return config, credentials


def _review_cmd(args: argparse.Namespace) -> int:
    prepared = _prepare_run(args)
    if prepared is None:
        return 1
    config, credentials = prepared

    target = (
        f"against '{args.target_branch}'"
        if args.target_branch
        else "(auto-detecting fork point)"
    )
    logger.info("Starting AI Code Review %s...", target)
    result = asyncio.run(
        collect_against_base(
            args.target_branch,
            args.ignore,
            git=_git(args),
            ticket_system=config.ticket_system,
        )
    )
    if isinstance(result, CollectionFailure):
        return _handle_failure(result)
    return _deliver(args, result, credentials, uncommitted=False)


def _review_uncommitted_cmd(args: argparse.Namespace) -> int:
    prepared = _prepare_run(args)
    if prepared is None:
        return 1
    config, credentials = prepared

    logger.info("Reviewing %s changes...", args.mode)
    result = asyncio.run(
        collect_uncommitted(
            args.mode,
            args.untracked,
            git=_git(args),
            ticket_system=config.ticket_system,
        )
    )
    if isinstance(result, CollectionFailure):
        return _handle_failure(result)
    return _deliver(args, result, credentials, uncommitted=True)


def _config_show(config: ReviewConfig) -> None:
    print("Current Configuration:")
    print(f"  API Key: {'Set' if config.api_key else 'Not set'}")
    print(f"  API Endpoint: {config.api_endpoint or 'Not set'}")
    print(f"  Ticket System: {config.ticket_system or 'Not set'}")


def _config_cmd(args: argparse.Namespace) -> int:
    store = ConfigStore()
    updates: list[tuple[str, str, Any]] = [
        ("api_key", "API Key", args.key),
        ("api_endpoint", "API Endpoint", args.endpoint),
        ("ticket_system", "Ticket System", args.ticket_system),
    ]
    try:
        if args.show:
            _config_show(load_config(store))
            return 0

        changed = False
        for key, label, value in updates:
            if value is None:
                continue
            store.set(key, value)
            print(f"{label} saved successfully!")
            changed = True
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    if not changed:
        print("Please provide at least one configuration option.")
        print("\nUsage:")
        print("  diffreview config --key YOUR_API_KEY")
        print("  diffreview config --endpoint https://example.com/api/review")
        print("  diffreview config --show              (view current configuration)")
    return 0


def _submission_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--dry-run",
        action="store_true",
        help="Show payload without sending to API.",
    )
    parent.add_argument(
        "--json",
        action="store_true",
        help="Output raw API response as JSON.",
    )
    parent.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Submit without asking for confirmation.",
    )
    return parent


def _untracked_option() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--untracked",
        action="store_true",
        help="Include untracked (non-ignored) files as added files.",
    )
    return parent


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diffreview",
        description="AI-powered code review for local git changes.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-C",
        dest="directory",
        type=Path,
        default=None,
        help="Run as if started in this directory.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every git command.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    submission = _submission_options()
    untracked = _untracked_option()

    review_parser = subparsers.add_parser(
        "review",
        parents=[submission],
        help="Review the changes in the current branch.",
    )
    review_parser.add_argument(
        "target_branch",
        nargs="?",
        default=None,
        help=(
            "The branch to compare against (e.g., main, develop). "
            "If not specified, auto-detects fork point."
        ),
    )
    review_parser.add_argument(
        "--ignore",
        nargs="+",
        default=[],
        metavar="PATTERN",
        help='Ignore files matching these patterns (e.g., "*.lock" "dist/*").',
    )
    review_parser.set_defaults(func=_review_cmd)

    staged_parser = subparsers.add_parser(
        "review-staged",
        aliases=["stg", "staged", "cached"],
        parents=[submission, untracked],
        help="Review staged changes (git diff --cached).",
    )
    staged_parser.set_defaults(func=_review_uncommitted_cmd, mode="staged")

    unstaged_parser = subparsers.add_parser(
        "review-unstaged",
        aliases=["diff"],
        parents=[submission, untracked],
        help="Review unstaged changes (git diff).",
    )
    unstaged_parser.set_defaults(func=_review_uncommitted_cmd, mode="unstaged")

    all_parser = subparsers.add_parser(
        "review-all",
        aliases=["uncommitted"],
        parents=[submission, untracked],
        help="Review staged and unstaged changes against HEAD.",
    )
    all_parser.set_defaults(func=_review_uncommitted_cmd, mode="all")

    config_parser = subparsers.add_parser("config", help="Configure API settings.")
    config_parser.add_argument("--key", help="Your API key.")
    config_parser.add_argument("--endpoint", help="Your API endpoint URL.")
    config_parser.add_argument(
        "--ticket-system", help="Ticket system tag sent with every review."
    )
    config_parser.add_argument(
        "--show", action="store_true", help="Show current configuration."
    )
    config_parser.set_defaults(func=_config_cmd)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])
    _configure_logging(args.verbose)
    _load_env(args.directory)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
