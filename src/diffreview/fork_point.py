from __future__ import annotations

import logging
import re

from diffreview.errors import (
    BranchNotFoundError,
    FetchFailedError,
    ForkPointNotFoundError,
    GitCommandError,
)
from diffreview.git import DEFAULT_REMOTE, GitRunner
from diffreview.models import ForkPoint

logger = logging.getLogger(__name__)

_REFLOG_HASH_RE = re.compile(r"^([a-f0-9]{40})")
_REMOTE_PREFIX = f"{DEFAULT_REMOTE}/"


def is_remote_tracking(ref: str) -> bool:
    return ref.startswith(_REMOTE_PREFIX)


def fork_point_from_reflog(reflog: str) -> str | None:
    # Newest entries come first, so the last line is the branch creation.
    lines = [line for line in reflog.splitlines() if line.strip()]
    if not lines:
        return None
    match = _REFLOG_HASH_RE.match(lines[-1])
    return match.group(1) if match else None


async def _fetch_latest(git: GitRunner, branch: str) -> None:
    try:
        await git.fetch_branch(branch)
    except GitCommandError as exc:
        raise FetchFailedError(
            f"Could not fetch remote branch '{_REMOTE_PREFIX}{branch}': {exc}"
        ) from exc


async def resolve_comparison_ref(git: GitRunner, target_branch: str) -> str:
    """Return the reference to compare against for an explicit branch.

    Local branch names are promoted to their remote-tracking form when a
    fetch succeeds; the user's local branch is never updated.
    """
    if is_remote_tracking(target_branch):
        if not await git.ref_exists(target_branch):
            raise BranchNotFoundError(
                f"Remote-tracking branch '{target_branch}' does not exist.",
                hint=f"Try fetching it first with: git fetch {DEFAULT_REMOTE}",
            )
        logger.info("Using remote-tracking branch '%s' for comparison.", target_branch)
        return target_branch

    if not await git.ref_exists(target_branch):
        raise BranchNotFoundError(
            f"Branch '{target_branch}' does not exist locally.",
            hint="Please check out the branch first or specify a different one.",
        )

    logger.info("Fetching latest changes for branch '%s'...", target_branch)
    try:
        await _fetch_latest(git, target_branch)
    except FetchFailedError as exc:
        logger.warning("%s", exc)
        logger.warning(
            "Proceeding with local branch '%s' for comparison.", target_branch
        )
        return target_branch

    remote_ref = f"{_REMOTE_PREFIX}{target_branch}"
    logger.info("Using remote-tracking branch '%s' for comparison.", remote_ref)
    return remote_ref


async def resolve_fork_point(
    git: GitRunner, target_branch: str | None, current_branch: str
) -> ForkPoint:
    if target_branch:
        ref = await resolve_comparison_ref(git, target_branch)
        commit = await git.merge_base(ref, "HEAD")
        fork_point = ForkPoint(commit=commit, ref=ref)
        logger.info(
            "Comparing against %s (merge-base: %s)...", ref, fork_point.short
        )
        return fork_point

    try:
        reflog = await git.reflog(current_branch)
    except GitCommandError as exc:
        logger.debug("Reading reflog failed: %s", exc)
        reflog = ""

    commit = fork_point_from_reflog(reflog)
    if commit is None:
        raise ForkPointNotFoundError(
            "Could not auto-detect fork point. Please specify a target branch.",
            hint="Usage: diffreview review <target-branch>",
        )
    fork_point = ForkPoint(commit=commit)
    logger.info("Auto-detected fork point from reflog: %s", fork_point.short)
    return fork_point
