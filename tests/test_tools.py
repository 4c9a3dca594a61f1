"""Tests for tool name matching and browser snapshot detection."""

from __future__ import annotations

from transcript_budget.config import ToolMatch
from transcript_budget.context.tools import (
    is_snapshot_tool_result,
    looks_like_snapshot_text,
    make_tool_prunable_predicate,
)
from transcript_budget.types import TextBlock, ToolCallBlock, Turn, TurnRole

_SNAPSHOT_TEXT = """- navigation [ref=e1]:
  - link "Home" [ref=e5]
- main:
  - heading "Welcome" [level=1]
  - button "Submit" [ref=e12]"""


def _call(tool_call_id: str, name: str, args: dict) -> Turn:
    return Turn(
        role=TurnRole.ASSISTANT,
        content=[ToolCallBlock(id=tool_call_id, name=name, arguments=args)],
    )


def _result(tool_call_id: str, name: str, text: str) -> Turn:
    return Turn(
        role=TurnRole.TOOL_RESULT,
        tool_call_id=tool_call_id,
        tool_name=name,
        content=[TextBlock(text=text)],
    )


# -- prunable predicate --


def test_empty_lists_allow_everything() -> None:
    pred = make_tool_prunable_predicate(ToolMatch())
    assert pred("exec") is True
    assert pred("browser") is True


def test_deny_overrides_allow() -> None:
    pred = make_tool_prunable_predicate(ToolMatch(allow=["*"], deny=["browser"]))
    assert pred("browser") is False
    assert pred("exec") is True


def test_allow_list_restricts() -> None:
    pred = make_tool_prunable_predicate(ToolMatch(allow=["exec", "read_*"]))
    assert pred("exec") is True
    assert pred("read_file") is True
    assert pred("write_file") is False


def test_matching_is_case_insensitive_and_trimmed() -> None:
    pred = make_tool_prunable_predicate(ToolMatch(deny=["  Web_*  "]))
    assert pred("web_fetch") is False
    assert pred(" WEB_SEARCH ") is False
    assert pred("exec") is True


def test_wildcard_in_middle() -> None:
    pred = make_tool_prunable_predicate(ToolMatch(allow=["mcp_*_read"]))
    assert pred("mcp_github_read") is True
    assert pred("mcp_github_write") is False


def test_blank_patterns_ignored() -> None:
    pred = make_tool_prunable_predicate(ToolMatch(allow=["", "  "]))
    assert pred("anything") is True


# -- snapshot classification --


def test_detects_snapshot_by_call_arguments() -> None:
    call, result = _call("t1", "browser", {"action": "snapshot"}), _result("t1", "browser", "x")
    assert is_snapshot_tool_result(result, [call, result]) is True


def test_action_match_is_case_insensitive() -> None:
    call, result = _call("t1", "browser", {"action": "SNAPSHOT"}), _result("t1", "Browser", "x")
    assert is_snapshot_tool_result(result, [call, result]) is True


def test_browser_status_is_not_snapshot() -> None:
    call = _call("t1", "browser", {"action": "status"})
    result = _result("t1", "browser", '{"running": true}')
    assert is_snapshot_tool_result(result, [call, result]) is False


def test_other_tools_are_not_snapshots() -> None:
    call, result = _call("t1", "exec", {"action": "snapshot"}), _result("t1", "exec", "out")
    assert is_snapshot_tool_result(result, [call, result]) is False


def test_missing_call_is_not_snapshot() -> None:
    result = _result("t1", "browser", _SNAPSHOT_TEXT)
    assert is_snapshot_tool_result(result, [result]) is False


def test_non_tool_results_are_not_snapshots() -> None:
    assert is_snapshot_tool_result(Turn(role=TurnRole.USER, content="hi"), []) is False
    assert is_snapshot_tool_result(Turn(role=TurnRole.ASSISTANT, content="hi"), []) is False


def test_heuristic_fallback_only_when_call_missing() -> None:
    result = _result("t1", "browser", _SNAPSHOT_TEXT)
    assert is_snapshot_tool_result(result, [result], heuristic_fallback=True) is True

    # The call site wins when it is available.
    call = _call("t1", "browser", {"action": "status"})
    assert is_snapshot_tool_result(result, [call, result], heuristic_fallback=True) is False


def test_snapshot_text_heuristic() -> None:
    assert looks_like_snapshot_text(_SNAPSHOT_TEXT) is True
    assert looks_like_snapshot_text("url: https://example.com\ntitle: Example") is True
    assert looks_like_snapshot_text('{"running": true, "profiles": ["default"]}') is False
    assert looks_like_snapshot_text("") is False
