from __future__ import annotations

import logging

from diffreview.models import FileChange

logger = logging.getLogger(__name__)

_PATH_CHANGING_PREFIXES = ("R", "C")


def parse_name_status(output: str) -> list[FileChange]:
    """Parse ``git diff --name-status`` output into ordered file changes.

    Renames and copies carry a similarity score (``R100``) and two paths;
    every other record has a single path.
    """
    files: list[FileChange] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        status_raw = parts[0].strip()
        if not status_raw:
            logger.warning("Skipping malformed name-status line: %r", line)
            continue

        if status_raw.startswith(_PATH_CHANGING_PREFIXES):
            if len(parts) < 3:
                logger.warning("Skipping malformed name-status line: %r", line)
                continue
            files.append(
                FileChange(path=parts[2], old_path=parts[1], status=status_raw[0])
            )
            continue

        if len(parts) < 2:
            logger.warning("Skipping malformed name-status line: %r", line)
            continue
        files.append(FileChange(path=parts[1], old_path=parts[1], status=status_raw))
    return files


def build_untracked_diff(path: str, content: str) -> str:
    """Render an untracked file as an all-additions unified diff."""
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    header = [
        f"diff --git a/{path} b/{path}",
        "new file mode 100644",
        "--- /dev/null",
        f"+++ b/{path}",
    ]
    if not lines:
        return "\n".join(header)
    hunk_header = f"@@ -0,0 +1,{len(lines)} @@" if len(lines) != 1 else "@@ -0,0 +1 @@"
    body = [f"+{line}" for line in lines]
    return "\n".join([*header, hunk_header, *body])
