from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

_DOUBLE_STAR = "\x00"


@lru_cache(maxsize=256)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    for char in pattern.replace("**", _DOUBLE_STAR):
        if char == _DOUBLE_STAR:
            parts.append(".*")
        elif char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    regex = "".join(parts)
    # A leading "**/" also matches paths at the repository root.
    if regex.startswith(".*/"):
        regex = "(?:.*/)?" + regex[3:]
    return re.compile(f"^{regex}$")


def should_ignore(path: str, patterns: Iterable[str] | None) -> bool:
    if not patterns:
        return False
    return any(_compile_pattern(pattern).match(path) for pattern in patterns)
