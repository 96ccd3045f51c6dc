from __future__ import annotations

import asyncio
import shutil
import subprocess
from pathlib import Path

import pytest

from diffreview.git import GitRunner
from diffreview.models import CollectionFailure, ReviewPayload
from diffreview.prepare import collect_against_base, collect_uncommitted

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Test Dev")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "dev@example.com")

    work = tmp_path / "work"
    work.mkdir()
    _git(work, "init", "-q")
    _git(work, "checkout", "-q", "-b", "main")
    (work / "a.txt").write_text("one\n", encoding="utf-8")
    (work / "b.txt").write_text("keep\n", encoding="utf-8")
    (work / "old.txt").write_text("legacy\n", encoding="utf-8")
    _git(work, "add", ".")
    _git(work, "commit", "-q", "-m", "Initial")

    origin = tmp_path / "origin.git"
    _git(tmp_path, "clone", "-q", "--bare", str(work), str(origin))
    _git(work, "remote", "add", "origin", str(origin))
    _git(work, "fetch", "-q", "origin")

    _git(work, "checkout", "-q", "-b", "feature")
    (work / "a.txt").write_text("one\ntwo\n", encoding="utf-8")
    (work / "c.txt").write_text("fresh\n", encoding="utf-8")
    _git(work, "rm", "-q", "old.txt")
    _git(work, "add", ".")
    _git(work, "commit", "-q", "-m", "Feature work")
    return work


def _by_path(payload: ReviewPayload) -> dict[str, dict[str, object]]:
    return {entry["path"]: entry for entry in payload.to_dict()["changed_files"]}


def test_branch_review_auto_detects_fork_point(repo: Path) -> None:
    payload = asyncio.run(collect_against_base(git=GitRunner(repo)))
    assert isinstance(payload, ReviewPayload)
    assert payload.source_branch == "feature"
    assert payload.commit_messages == ["Feature work"]

    files = _by_path(payload)
    assert {path: entry["status"] for path, entry in files.items()} == {
        "a.txt": "M",
        "c.txt": "A",
        "old.txt": "D",
    }
    assert "+two" in files["a.txt"]["diff"]
    assert files["a.txt"]["content"] == "one"
    assert files["c.txt"]["content"] == ""
    assert files["old.txt"]["content"] == "legacy"

    data = payload.to_dict()
    assert data["author_email"] == "dev@example.com"
    assert data["contributors"] == [
        {"email": "dev@example.com", "name": "Test Dev", "commits": 1}
    ]


def test_branch_review_against_fetched_target(repo: Path) -> None:
    nested = repo / "nested"
    nested.mkdir()
    payload = asyncio.run(
        collect_against_base("main", ["old.txt"], git=GitRunner(nested))
    )
    assert isinstance(payload, ReviewPayload)
    assert sorted(_by_path(payload)) == ["a.txt", "c.txt"]
    assert payload.repo_url == str(repo.parent / "origin")


def test_uncommitted_review_includes_untracked_files(repo: Path) -> None:
    (repo / "b.txt").write_text("keep\nchanged\n", encoding="utf-8")
    _git(repo, "add", "b.txt")
    (repo / "d.txt").write_text("draft\n", encoding="utf-8")

    staged = asyncio.run(collect_uncommitted("staged", git=GitRunner(repo)))
    assert isinstance(staged, ReviewPayload)
    assert list(_by_path(staged)) == ["b.txt"]

    everything = asyncio.run(collect_uncommitted("all", True, git=GitRunner(repo)))
    assert isinstance(everything, ReviewPayload)
    files = _by_path(everything)
    assert list(files) == ["b.txt", "d.txt"]
    assert files["b.txt"]["content"] == "keep"
    assert "+draft" in files["d.txt"]["diff"]
    assert everything.commit_messages == []


def test_clean_worktree_reports_no_changes(repo: Path) -> None:
    result = asyncio.run(collect_uncommitted("unstaged", git=GitRunner(repo)))
    assert isinstance(result, CollectionFailure)
    assert result.no_changes


def test_non_ascii_paths_are_kept_verbatim(repo: Path) -> None:
    (repo / "café.txt").write_text("bonjour\n", encoding="utf-8")
    _git(repo, "add", "café.txt")
    _git(repo, "commit", "-q", "-m", "Add café")

    branch = asyncio.run(collect_against_base(git=GitRunner(repo)))
    assert isinstance(branch, ReviewPayload)
    added = _by_path(branch)["café.txt"]
    assert added["status"] == "A"
    assert "+bonjour" in added["diff"]

    (repo / "café.txt").write_text("bonjour\nencore\n", encoding="utf-8")
    (repo / "naïve.md").write_text("draft\n", encoding="utf-8")
    uncommitted = asyncio.run(collect_uncommitted("unstaged", True, git=GitRunner(repo)))
    assert isinstance(uncommitted, ReviewPayload)
    files = _by_path(uncommitted)
    assert list(files) == ["café.txt", "naïve.md"]
    assert "+encore" in files["café.txt"]["diff"]
    assert files["café.txt"]["content"] == "bonjour"
    assert "+draft" in files["naïve.md"]["diff"]
