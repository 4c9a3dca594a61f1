"""Glob patterns for tool name matching (exact, ``*`` wildcards, match-all)."""

from __future__ import annotations

import re
from typing import Callable, Iterable, NamedTuple


class GlobPattern(NamedTuple):
    kind: str  # "all" | "exact" | "regex"
    value: str
    regex: re.Pattern[str] | None = None


def compile_glob_pattern(raw: str, normalize: Callable[[str], str]) -> GlobPattern | None:
    pattern = normalize(raw)
    if not pattern:
        return None
    if pattern == "*":
        return GlobPattern("all", pattern)
    if "*" not in pattern:
        return GlobPattern("exact", pattern)
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return GlobPattern("regex", pattern, re.compile(f"^{body}$"))


def compile_glob_patterns(
    raw: Iterable[str] | None,
    normalize: Callable[[str], str],
) -> list[GlobPattern]:
    if not raw:
        return []
    compiled = (compile_glob_pattern(r, normalize) for r in raw)
    return [p for p in compiled if p is not None]


def matches_any_glob_pattern(value: str, patterns: Iterable[GlobPattern]) -> bool:
    for p in patterns:
        if p.kind == "all":
            return True
        if p.kind == "exact" and value == p.value:
            return True
        if p.kind == "regex" and p.regex is not None and p.regex.match(value):
            return True
    return False
