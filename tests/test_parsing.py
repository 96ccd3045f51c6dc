from __future__ import annotations

import pytest

from diffreview.diff_parser import build_untracked_diff, parse_name_status
from diffreview.ignore import should_ignore
from diffreview.models import FileChange
from diffreview.util import TRUNCATION_MARKER, normalize_repo_url, truncate_content


def _triples(files: list[FileChange]) -> list[tuple[str, str, str]]:
    return [(file.status, file.path, file.old_path) for file in files]


def test_parse_name_status_basic_statuses() -> None:
    files = parse_name_status("M\ta.js\nA\tb.js\nD\tc.js")
    assert _triples(files) == [
        ("M", "a.js", "a.js"),
        ("A", "b.js", "b.js"),
        ("D", "c.js", "c.js"),
    ]
    assert all(file.diff == "" and file.content == "" for file in files)


def test_parse_name_status_rename_and_copy_drop_similarity_score() -> None:
    files = parse_name_status("R100\told.js\tnew.js\nC075\tsrc/a.py\tsrc/b.py\n")
    assert _triples(files) == [
        ("R", "new.js", "old.js"),
        ("C", "src/b.py", "src/a.py"),
    ]


def test_parse_name_status_empty_and_blank_lines() -> None:
    assert parse_name_status("") == []
    assert _triples(parse_name_status("\nM\ta.js\n\n")) == [("M", "a.js", "a.js")]


def test_parse_name_status_skips_malformed_lines() -> None:
    files = parse_name_status("R100\tonly-old.js\nM\nM\tkept.js")
    assert _triples(files) == [("M", "kept.js", "kept.js")]


def test_rename_serializes_old_path_but_modified_does_not() -> None:
    renamed, modified = parse_name_status(
        "R095\told/path.js\tnew/path.js\nM\tsame.js"
    )
    assert renamed.to_dict()["old_path"] == "old/path.js"
    assert renamed.to_dict()["path"] == "new/path.js"
    assert "old_path" not in modified.to_dict()


def test_truncate_content_is_identity_within_limit() -> None:
    text = "\n".join(f"line {index}" for index in range(10))
    assert truncate_content(text, 10) == text
    assert truncate_content("", 10) == ""


def test_truncate_content_keeps_head_and_tail() -> None:
    lines = [f"line {index}" for index in range(11)]
    result = truncate_content("\n".join(lines), 4)
    assert result == "line 0\nline 1\n\n... [truncated] ...\n\nline 9\nline 10"
    for middle in lines[2:9]:
        assert middle not in result.split("\n")


def test_truncate_content_default_limit() -> None:
    text = "\n".join(str(index) for index in range(2500))
    result = truncate_content(text).split("\n")
    assert result[:1000] == [str(index) for index in range(1000)]
    assert result[-1000:] == [str(index) for index in range(1500, 2500)]
    assert TRUNCATION_MARKER in result


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("git@github.com:u/r.git", "https://github.com/u/r"),
        ("git@github.com:u/r", "https://github.com/u/r"),
        ("git@gitlab.com:team/project.git", "https://gitlab.com/team/project"),
        ("git@bitbucket.org:team/repo.git", "https://bitbucket.org/team/repo"),
        (
            "git@ssh.dev.azure.com:v3/org/project/repo",
            "https://dev.azure.com/org/project/_git/repo",
        ),
        ("https://github.com/u/r", "https://github.com/u/r"),
        ("https://github.com/u/r.git", "https://github.com/u/r"),
        ("/srv/git/local.git", "/srv/git/local"),
    ],
)
def test_normalize_repo_url(url: str, expected: str) -> None:
    assert normalize_repo_url(url) == expected
    assert normalize_repo_url(normalize_repo_url(url)) == normalize_repo_url(url)


def test_should_ignore_single_and_double_star() -> None:
    assert should_ignore("dist/bundle.js", ["dist/*"]) is True
    assert should_ignore("dist/css/a.css", ["dist/*"]) is False
    assert should_ignore("dist/css/a.css", ["dist/**"]) is True


def test_should_ignore_empty_patterns() -> None:
    assert should_ignore("anything.txt", []) is False
    assert should_ignore("anything.txt", None) is False


def test_should_ignore_leading_double_star_is_optional() -> None:
    assert should_ignore("file.sql", ["**/*.sql"]) is True
    assert should_ignore("dir/sub/file.sql", ["**/*.sql"]) is True
    assert should_ignore("file.sqlx", ["**/*.sql"]) is False


def test_should_ignore_is_anchored_and_escapes_literals() -> None:
    assert should_ignore("package-lock.json", ["*.lock"]) is False
    assert should_ignore("yarn.lock", ["*.lock"]) is True
    assert should_ignore("nested/yarn.lock", ["*.lock"]) is False
    assert should_ignore("fileXjs", ["file.js"]) is False
    assert should_ignore("a1.txt", ["a?.txt"]) is True
    assert should_ignore("c++/main.cc", ["c++/*"]) is True


def test_should_ignore_any_pattern_matches() -> None:
    assert should_ignore("docs/readme.md", ["*.lock", "docs/**"]) is True


def test_build_untracked_diff_marks_every_line_as_added() -> None:
    diff = build_untracked_diff("notes.txt", "hello\nworld\n")
    assert diff.splitlines() == [
        "diff --git a/notes.txt b/notes.txt",
        "new file mode 100644",
        "--- /dev/null",
        "+++ b/notes.txt",
        "@@ -0,0 +1,2 @@",
        "+hello",
        "+world",
    ]


def test_build_untracked_diff_single_line_and_empty_file() -> None:
    assert build_untracked_diff("a.txt", "x").splitlines()[-2:] == ["@@ -0,0 +1 @@", "+x"]
    assert build_untracked_diff("empty.txt", "").splitlines()[-1] == "+++ b/empty.txt"
