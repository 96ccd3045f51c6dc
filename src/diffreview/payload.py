from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from diffreview.models import ContributorStats, FileChange, ReviewPayload
from diffreview.util import normalize_repo_url

_DISPLAY_MAX_CHARS = 500


def assemble_payload(
    *,
    repo_url: str,
    source_branch: str,
    changed_files: Iterable[FileChange],
    commit_messages: Iterable[str] = (),
    contributor_stats: ContributorStats | None = None,
    ticket_system: str | None = None,
) -> ReviewPayload:
    return ReviewPayload(
        repo_url=normalize_repo_url(repo_url.strip()),
        source_branch=source_branch.strip(),
        commit_messages=list(commit_messages),
        changed_files=list(changed_files),
        contributor_stats=contributor_stats,
        ticket_system=ticket_system or None,
    )


def _shorten(value: str, max_chars: int) -> str:
    if len(value) <= max_chars:
        return value
    return f"{value[:max_chars]}... [truncated {len(value) - max_chars} chars]"


def display_payload(
    payload: ReviewPayload, *, max_chars: int = _DISPLAY_MAX_CHARS
) -> dict[str, Any]:
    data = payload.to_dict()
    data["changed_files"] = [
        {
            **file_entry,
            "diff": _shorten(file_entry["diff"], max_chars),
            "content": _shorten(file_entry["content"], max_chars),
        }
        for file_entry in data["changed_files"]
    ]
    return data
