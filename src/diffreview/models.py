from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

UncommittedMode = Literal["staged", "unstaged", "all"]
_PATH_CHANGING_STATUSES = frozenset({"R", "C"})


@dataclass(slots=True, frozen=True)
class FileChange:
    path: str
    old_path: str
    status: str
    diff: str = ""
    content: str = ""
    # Synthetic diff built from an untracked file, not produced by git diff.
    is_untracked: bool = False

    @property
    def is_path_change(self) -> bool:
        return self.status in _PATH_CHANGING_STATUSES

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "path": self.path,
            "status": self.status,
            "diff": self.diff,
            "content": self.content,
        }
        if self.is_path_change:
            data["old_path"] = self.old_path
        return data


@dataclass(slots=True)
class Contributor:
    email: str
    name: str
    commits: int = 0

    def to_dict(self) -> dict[str, object]:
        return {"email": self.email, "name": self.name, "commits": self.commits}


@dataclass(slots=True)
class ContributorStats:
    author_email: str | None = None
    author_name: str | None = None
    contributors: list[Contributor] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class ForkPoint:
    commit: str
    ref: str | None = None

    @property
    def short(self) -> str:
        return self.commit[:7]

    @property
    def diff_range(self) -> str:
        return f"{self.commit}..HEAD"


@dataclass(slots=True)
class ReviewPayload:
    repo_url: str
    source_branch: str
    commit_messages: list[str] = field(default_factory=list)
    changed_files: list[FileChange] = field(default_factory=list)
    contributor_stats: ContributorStats | None = None
    ticket_system: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "repo_url": self.repo_url,
            "commit_messages": list(self.commit_messages),
            "changed_files": [file.to_dict() for file in self.changed_files],
            "source_branch": self.source_branch,
        }
        if self.contributor_stats is not None:
            stats = self.contributor_stats
            data["author_email"] = stats.author_email
            data["author_name"] = stats.author_name
            data["contributors"] = [
                contributor.to_dict() for contributor in stats.contributors
            ]
        if self.ticket_system:
            data["ticket_system"] = self.ticket_system
        return data


@dataclass(slots=True, frozen=True)
class CollectionFailure:
    message: str
    no_changes: bool = False
    hint: str | None = None
