from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

TRUNCATION_MARKER = "... [truncated] ..."
DEFAULT_MAX_LINES = 2000

_AZURE_DEVOPS_SSH_RE = re.compile(r"git@ssh\.dev\.azure\.com:v3/([^/]+)/([^/]+)/(.+)")
_SSH_HOST_RES = (
    ("github.com", re.compile(r"git@github\.com:([^/]+)/(.+?)(?:\.git)?$")),
    ("gitlab.com", re.compile(r"git@gitlab\.com:([^/]+)/(.+?)(?:\.git)?$")),
    ("bitbucket.org", re.compile(r"git@bitbucket\.org:([^/]+)/(.+?)(?:\.git)?$")),
)


def truncate_content(content: str, max_lines: int = DEFAULT_MAX_LINES) -> str:
    lines = content.split("\n")
    if len(lines) <= max_lines:
        return content

    half = max_lines // 2
    head = "\n".join(lines[:half])
    tail = "\n".join(lines[len(lines) - half :]) if half else ""
    return f"{head}\n\n{TRUNCATION_MARKER}\n\n{tail}"


def normalize_repo_url(url: str) -> str:
    """Rewrite an SSH remote URL into the provider's HTTPS browsing URL.

    Unknown forms, including URLs that are already HTTPS, only lose a
    trailing ``.git``.
    """
    azure_match = _AZURE_DEVOPS_SSH_RE.match(url)
    if azure_match:
        org, project, repo = azure_match.groups()
        repo = repo.removesuffix(".git")
        return f"https://dev.azure.com/{org}/{project}/_git/{repo}"

    for host, pattern in _SSH_HOST_RES:
        match = pattern.match(url)
        if match:
            user, repo = match.groups()
            return f"https://{host}/{user}/{repo}"

    return url.removesuffix(".git")


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_json(path: Path, payload: dict[str, Any]) -> None:
    ensure_parent(path)
    path.write_text(
        json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8"
    )


def load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))
