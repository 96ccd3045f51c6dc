from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Any

from jinja2 import Environment, Template

from diffreview.models import ReviewPayload

_SEVERITIES = ("critical", "high", "medium", "low")
_SEPARATOR_WIDTH = 80

_TEMPLATE_ENV = Environment(
    autoescape=False, trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True
)


def _load_template(name: str) -> Template:
    text = resources.files("diffreview").joinpath(f"templates/{name}").read_text(
        encoding="utf-8"
    )
    return _TEMPLATE_ENV.from_string(text)


_REVIEW_TEMPLATE = _load_template("review.txt.j2")
_SUMMARY_TEMPLATE = _load_template("summary.txt.j2")


def format_category(category: Any) -> str:
    if not isinstance(category, str) or not category:
        return ""
    return category.replace("_", " ").title()


def _location(file_path: Any, line_number: Any, repo_root: Path | None) -> str:
    path_text = str(file_path) if file_path else "unknown"
    path = Path(path_text)
    if repo_root is not None and not path.is_absolute():
        path_text = str(repo_root / path)
    if line_number is None:
        return path_text
    return f"{path_text}:{line_number}"


def _review_section(data: Any) -> tuple[dict[str, Any], dict[str, Any]]:
    if not isinstance(data, dict):
        return {}, {}
    body = data.get("data", data)
    if not isinstance(body, dict):
        return {}, {}
    review = body.get("review")
    summary = body.get("summary")
    return (
        review if isinstance(review, dict) else {},
        summary if isinstance(summary, dict) else {},
    )


def render_review(data: Any, *, repo_root: Path | None = None) -> str:
    review, summary = _review_section(data)

    praises_render: list[dict[str, str]] = []
    for praise in review.get("praises") or []:
        if not isinstance(praise, dict):
            continue
        praises_render.append(
            {
                "category": format_category(praise.get("category")),
                "location": _location(
                    praise.get("file_path"), praise.get("line_number"), repo_root
                ),
                "message": str(praise.get("message", "")),
            }
        )

    issues_render: list[dict[str, Any]] = []
    for issue in review.get("issues") or []:
        if not isinstance(issue, dict):
            continue
        suggested_fix = issue.get("suggested_fix")
        issues_render.append(
            {
                "severity": str(issue.get("severity") or "unknown"),
                "category": format_category(issue.get("category")),
                "location": _location(
                    issue.get("file_path"), issue.get("line_number"), repo_root
                ),
                "message": str(issue.get("message", "")),
                "suggested_fix": suggested_fix.split("\n")
                if isinstance(suggested_fix, str) and suggested_fix
                else [],
            }
        )

    severity_counts = [
        {"label": severity.capitalize(), "count": summary[severity]}
        for severity in _SEVERITIES
        if isinstance(summary.get(severity), int) and summary[severity] > 0
    ]

    return _REVIEW_TEMPLATE.render(
        praises=praises_render,
        total_praises=summary.get("total_praises", len(praises_render)),
        issues=issues_render,
        total_issues=summary.get("total_issues", len(issues_render)),
        severity_counts=severity_counts,
        separator="-" * _SEPARATOR_WIDTH,
    )


def render_submission_summary(payload: ReviewPayload, *, uncommitted: bool) -> str:
    files = [
        {
            "status": file.status,
            "path": file.path,
            "old_path": file.old_path if file.is_path_change else None,
        }
        for file in payload.changed_files
    ]
    return _SUMMARY_TEMPLATE.render(
        scope="uncommitted changes" if uncommitted else "changes",
        base_note="Comparing against HEAD (last commit)" if uncommitted else None,
        branch=payload.source_branch,
        show_commits=not uncommitted,
        commit_count=len(payload.commit_messages),
        files=files,
    )
