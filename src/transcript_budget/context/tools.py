"""Tool result eligibility — prunable tool names and browser snapshot detection."""

from __future__ import annotations

import re
from typing import Any, Callable, Sequence

from ..config import ToolMatch
from ..types import Turn, TurnRole
from .estimate import collect_text_segments
from .glob import compile_glob_patterns, matches_any_glob_pattern

SNAPSHOT_TOOL_NAME = "browser"
SNAPSHOT_ACTION = "snapshot"

_REF_MARKER_RE = re.compile(r"\[ref=e\d+\]")
_URL_TITLE_RE = re.compile(r"^\s*(?:-\s*)?(?:url|title):", re.IGNORECASE | re.MULTILINE)
_ARIA_TAG_RE = re.compile(
    r"^\s*-\s*(?:navigation|main|banner|contentinfo|heading|button|link|textbox|"
    r"listitem|list|region|img|combobox|checkbox)\b",
    re.MULTILINE,
)


def _normalize(value: str) -> str:
    return str(value or "").strip().lower()


def make_tool_prunable_predicate(tools: ToolMatch) -> Callable[[str], bool]:
    """Build a predicate deciding whether a tool's results may be pruned."""
    deny = compile_glob_patterns(tools.deny, _normalize)
    allow = compile_glob_patterns(tools.allow, _normalize)

    def is_prunable(tool_name: str) -> bool:
        name = _normalize(tool_name)
        if matches_any_glob_pattern(name, deny):
            return False
        if not allow:
            return True
        return matches_any_glob_pattern(name, allow)

    return is_prunable


def find_tool_call_arguments(turns: Sequence[Turn], tool_call_id: str) -> dict[str, Any] | None:
    """Arguments of the assistant tool call with the given id, if present."""
    for turn in turns:
        if turn.role != TurnRole.ASSISTANT:
            continue
        for block in turn.blocks:
            if block.type == "toolCall" and block.id == tool_call_id:
                return block.arguments
    return None


def looks_like_snapshot_text(text: str) -> bool:
    """Best-effort textual check for an accessibility-tree page snapshot.

    Only used when the originating tool call cannot be found.
    """
    if not text:
        return False
    if _REF_MARKER_RE.search(text):
        return True
    if _URL_TITLE_RE.search(text):
        return True
    return bool(_ARIA_TAG_RE.search(text))


def is_snapshot_tool_result(
    turn: Turn,
    turns: Sequence[Turn],
    *,
    heuristic_fallback: bool = False,
) -> bool:
    """Whether a tool result came from a ``browser`` call with ``action == "snapshot"``.

    The originating call is authoritative. If it cannot be located the result
    is not a snapshot, unless ``heuristic_fallback`` allows a text check.
    """
    if turn.role != TurnRole.TOOL_RESULT:
        return False
    if _normalize(turn.tool_name or "") != SNAPSHOT_TOOL_NAME:
        return False
    if not turn.tool_call_id:
        return False

    args = find_tool_call_arguments(turns, turn.tool_call_id)
    if args is None:
        if not heuristic_fallback:
            return False
        return looks_like_snapshot_text("\n".join(collect_text_segments(turn.blocks)))

    action = args.get("action")
    return isinstance(action, str) and action.lower() == SNAPSHOT_ACTION
