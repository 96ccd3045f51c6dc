from __future__ import annotations

from pathlib import Path

from diffreview.errors import GitCommandError
from diffreview.git import GitRunner

HEAD_SHA = "f" * 40
FORK_SHA = "abc123" + "0" * 34


class FakeGit(GitRunner):
    """GitRunner that answers from a table of canned outputs."""

    def __init__(
        self, responses: dict[tuple[str, ...], str | Exception], cwd: str = "/repo"
    ) -> None:
        super().__init__(cwd)
        self.responses = responses
        self.calls: list[tuple[str, ...]] = []

    def at(self, cwd: Path | str) -> GitRunner:
        self.cwd = Path(cwd)
        return self

    async def run(self, *args: str) -> str:
        self.calls.append(args)
        if args not in self.responses:
            raise GitCommandError(args, 128, f"fatal: unexpected command {args}")
        value = self.responses[args]
        if isinstance(value, Exception):
            raise value
        return value


def repo_context(branch: str = "feature") -> dict[tuple[str, ...], str | Exception]:
    return {
        ("remote", "get-url", "origin"): "git@github.com:acme/widgets.git",
        ("rev-parse", "--abbrev-ref", "HEAD"): branch,
        ("rev-parse", "--show-toplevel"): "/repo",
    }


def git_failure(*args: str, stderr: str = "fatal: bad revision") -> GitCommandError:
    return GitCommandError(args, 128, stderr)
