from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import replace
from pathlib import Path
from typing import TypeVar

from diffreview.diff_parser import build_untracked_diff, parse_name_status
from diffreview.errors import (
    ContentUnavailableError,
    DiffReviewError,
    GitCommandError,
)
from diffreview.fork_point import resolve_fork_point
from diffreview.git import GitRunner
from diffreview.ignore import should_ignore
from diffreview.models import (
    CollectionFailure,
    Contributor,
    ContributorStats,
    FileChange,
    ReviewPayload,
    UncommittedMode,
)
from diffreview.payload import assemble_payload
from diffreview.util import truncate_content

logger = logging.getLogger(__name__)

DIFF_CONTEXT_LINES = 15
DEFAULT_MAX_CONCURRENCY = 8
NO_CHANGES_MESSAGE = "No changes found to review."

_COMMIT_DELIMITER = "---EOC---"
_CONTEXT_ARG = f"-U{DIFF_CONTEXT_LINES}"
_MAX_UNTRACKED_FILE_BYTES = 8 * 1024 * 1024

_NAME_STATUS_ARGS: dict[str, tuple[str, ...]] = {
    "staged": ("diff", "--cached", "--name-status"),
    "unstaged": ("diff", "--name-status"),
    "all": ("diff", "HEAD", "--name-status"),
}
_MODE_LABELS = {
    "staged": "staged changes",
    "unstaged": "unstaged changes",
    "all": "all uncommitted changes",
}

_T = TypeVar("_T")
_R = TypeVar("_R")


async def _map_ordered(
    items: Sequence[_T],
    worker: Callable[[_T], Awaitable[_R]],
    *,
    max_concurrency: int,
) -> list[_R]:
    # gather() keeps submission order, whatever order the calls finish in.
    semaphore = asyncio.Semaphore(max(max_concurrency, 1))

    async def bounded(item: _T) -> _R:
        async with semaphore:
            return await worker(item)

    return list(await asyncio.gather(*(bounded(item) for item in items)))


def _failure(context: str, exc: DiffReviewError) -> CollectionFailure:
    logger.error("%s: %s", context, exc)
    if isinstance(exc, GitCommandError) and exc.stderr and exc.stderr != str(exc):
        logger.error("Git Error: %s", exc.stderr)
    if exc.hint:
        logger.info("%s", exc.hint)
    return CollectionFailure(message=str(exc), hint=exc.hint)


async def _repository_context(git: GitRunner) -> tuple[str, str, GitRunner]:
    repo_url = await git.remote_url()
    branch_name = await git.current_branch()
    repo_root = await git.repo_root()
    # Paths in git output are root-relative, so run everything from the root.
    return repo_url, branch_name, git.at(repo_root)


def _finalize_change(file: FileChange, *, diff: str, content: str) -> FileChange:
    if file.status == "D":
        diff = truncate_content(diff)
    return replace(file, diff=diff, content=truncate_content(content))


async def _show_original(git: GitRunner, ref: str, path: str) -> str:
    try:
        return await git.show_file(ref, path)
    except GitCommandError as exc:
        if exc.returncode is None:
            raise
        raise ContentUnavailableError(
            f"Could not get original content for {path} at {ref}."
        ) from exc


async def _original_content(git: GitRunner, ref: str, file: FileChange) -> str:
    if file.status == "A":
        return ""
    try:
        return await _show_original(git, ref, file.old_path)
    except ContentUnavailableError as exc:
        logger.warning("%s Assuming it was added.", exc)
        return ""


async def commit_messages(git: GitRunner, diff_range: str) -> list[str]:
    output = await git.run("log", f"--pretty=%B{_COMMIT_DELIMITER}", diff_range)
    return [
        message.strip()
        for message in output.split(_COMMIT_DELIMITER)
        if message.strip()
    ]


def filter_ignored(
    files: Iterable[FileChange], ignore_patterns: Sequence[str] | None
) -> list[FileChange]:
    if not ignore_patterns:
        return list(files)

    kept: list[FileChange] = []
    ignored_count = 0
    for file in files:
        if should_ignore(file.path, ignore_patterns):
            ignored_count += 1
            logger.info("  Ignoring: %s", file.path)
            continue
        kept.append(file)
    if ignored_count:
        logger.info("Ignored %d file(s) based on patterns", ignored_count)
    return kept


async def get_contributors(git: GitRunner, diff_range: str) -> ContributorStats:
    try:
        output = await git.run("log", "--no-merges", "--format=%ae|%an", diff_range)
    except GitCommandError as exc:
        logger.warning("Could not extract contributors: %s", exc)
        return ContributorStats()

    by_email: dict[str, Contributor] = {}
    for line in output.splitlines():
        email, _, name = line.strip().partition("|")
        if not email:
            continue
        contributor = by_email.setdefault(email, Contributor(email=email, name=email))
        if name.strip():
            contributor.name = name.strip()
        contributor.commits += 1

    # sorted() is stable, so ties keep the order they were first seen in.
    contributors = sorted(
        by_email.values(), key=lambda contributor: contributor.commits, reverse=True
    )
    if not contributors:
        return ContributorStats()
    author = contributors[0]
    return ContributorStats(
        author_email=author.email,
        author_name=author.name,
        contributors=contributors,
    )


async def _collect_against_base(
    git: GitRunner,
    target_branch: str | None,
    ignore_patterns: Sequence[str] | None,
    *,
    ticket_system: str | None,
    max_concurrency: int,
) -> ReviewPayload:
    repo_url, branch_name, root_git = await _repository_context(git)
    fork_point = await resolve_fork_point(root_git, target_branch, branch_name)
    diff_range = fork_point.diff_range
    logger.info("Analyzing commits from %s to HEAD...", fork_point.short)

    messages = await commit_messages(root_git, diff_range)
    name_status = await root_git.run("diff", "--name-status", diff_range)
    files = filter_ignored(parse_name_status(name_status), ignore_patterns)
    logger.info("Collecting diffs for %d file(s)...", len(files))

    async def build(file: FileChange) -> FileChange:
        diff = await root_git.run("diff", _CONTEXT_ARG, diff_range, "--", file.path)
        content = await _original_content(root_git, fork_point.commit, file)
        return _finalize_change(file, diff=diff, content=content)

    changed_files = await _map_ordered(files, build, max_concurrency=max_concurrency)
    contributor_stats = await get_contributors(root_git, diff_range)

    return assemble_payload(
        repo_url=repo_url,
        source_branch=branch_name,
        commit_messages=messages,
        changed_files=changed_files,
        contributor_stats=contributor_stats,
        ticket_system=ticket_system,
    )


async def collect_against_base(
    target_branch: str | None = None,
    ignore_patterns: Sequence[str] | None = None,
    *,
    git: GitRunner | None = None,
    ticket_system: str | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> ReviewPayload | CollectionFailure:
    """Collect the branch's changes since its fork point.

    Failures never propagate: they are logged and returned as a
    ``CollectionFailure`` so no partial payload is ever produced.
    """
    try:
        return await _collect_against_base(
            git or GitRunner(),
            target_branch,
            ignore_patterns,
            ticket_system=ticket_system,
            max_concurrency=max_concurrency,
        )
    except DiffReviewError as exc:
        return _failure("Failed to run local review analysis", exc)


async def _uncommitted_diff(git: GitRunner, mode: UncommittedMode, path: str) -> str:
    if mode == "staged":
        return await git.run("diff", "--cached", _CONTEXT_ARG, "--", path)
    if mode == "unstaged":
        return await git.run("diff", _CONTEXT_ARG, "--", path)
    staged = await git.run("diff", "--cached", _CONTEXT_ARG, "--", path)
    if staged.strip():
        return staged
    return await git.run("diff", _CONTEXT_ARG, "--", path)


def _read_untracked(root: Path, path: str) -> str | None:
    file_path = root / path
    try:
        if not file_path.is_file():
            return None
        if file_path.stat().st_size > _MAX_UNTRACKED_FILE_BYTES:
            logger.warning("Skipping oversized untracked file: %s", path)
            return None
        # Decoded from raw bytes so CRLF line endings reach the diff untouched.
        return file_path.read_bytes().decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("Skipping binary untracked file: %s", path)
    except OSError as exc:
        logger.warning("Could not read untracked file %s: %s", path, exc)
    return None


async def collect_untracked(
    git: GitRunner, root: Path, known_paths: Iterable[str] = ()
) -> list[FileChange]:
    seen = set(known_paths)
    changes: list[FileChange] = []
    for path in await git.untracked_files():
        if path in seen:
            continue
        seen.add(path)
        content = await asyncio.to_thread(_read_untracked, root, path)
        if content is None:
            continue
        changes.append(
            FileChange(
                path=path,
                old_path=path,
                status="A",
                # The whole file is the diff here, so it is bounded like content.
                diff=truncate_content(build_untracked_diff(path, content)),
                is_untracked=True,
            )
        )
    return changes


async def _collect_uncommitted(
    git: GitRunner,
    mode: UncommittedMode,
    include_untracked: bool,
    *,
    ticket_system: str | None,
    max_concurrency: int,
) -> ReviewPayload | CollectionFailure:
    if mode not in _NAME_STATUS_ARGS:
        raise DiffReviewError(f"Unsupported review mode: {mode}")

    repo_url, branch_name, root_git = await _repository_context(git)
    logger.info("Analyzing %s...", _MODE_LABELS[mode])
    name_status = await root_git.run(*_NAME_STATUS_ARGS[mode])
    files = parse_name_status(name_status)

    async def build(file: FileChange) -> FileChange:
        diff = await _uncommitted_diff(root_git, mode, file.path)
        content = await _original_content(root_git, "HEAD", file)
        return _finalize_change(file, diff=diff, content=content)

    changed_files = await _map_ordered(files, build, max_concurrency=max_concurrency)

    if include_untracked:
        untracked = await collect_untracked(
            root_git, root_git.cwd or Path.cwd(), (file.path for file in changed_files)
        )
        if untracked:
            logger.info("Including %d untracked file(s)", len(untracked))
        changed_files.extend(untracked)

    if not name_status.strip() and not changed_files:
        logger.info(NO_CHANGES_MESSAGE)
        return CollectionFailure(message=NO_CHANGES_MESSAGE, no_changes=True)

    return assemble_payload(
        repo_url=repo_url,
        source_branch=branch_name,
        changed_files=changed_files,
        ticket_system=ticket_system,
    )


async def collect_uncommitted(
    mode: UncommittedMode = "unstaged",
    include_untracked: bool = False,
    *,
    git: GitRunner | None = None,
    ticket_system: str | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> ReviewPayload | CollectionFailure:
    try:
        return await _collect_uncommitted(
            git or GitRunner(),
            mode,
            include_untracked,
            ticket_system=ticket_system,
            max_concurrency=max_concurrency,
        )
    except DiffReviewError as exc:
        return _failure("Failed to analyze uncommitted changes", exc)
