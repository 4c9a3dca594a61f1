"""Tests for transcript size estimation."""

from __future__ import annotations

from transcript_budget.context.estimate import (
    IMAGE_CHAR_ESTIMATE,
    estimate_context_chars,
    estimate_joined_text_length,
    estimate_turn_chars,
    take_head_from_joined_text,
    take_tail_from_joined_text,
    tokens_to_chars,
)
from transcript_budget.types import (
    ImageBlock,
    TextBlock,
    ThinkingBlock,
    ToolCallBlock,
    Turn,
    TurnRole,
)


def test_user_string_content() -> None:
    turn = Turn(role=TurnRole.USER, content="hello")
    assert estimate_turn_chars(turn) == 5


def test_tool_result_segments_joined_with_separator() -> None:
    turn = Turn(
        role=TurnRole.TOOL_RESULT,
        tool_call_id="t1",
        tool_name="exec",
        content=[TextBlock(text="abc"), TextBlock(text="de")],
    )
    assert estimate_turn_chars(turn) == 6


def test_image_blocks_use_flat_surrogate() -> None:
    turn = Turn(
        role=TurnRole.TOOL_RESULT,
        tool_call_id="t1",
        tool_name="screenshot",
        content=[TextBlock(text="x" * 10), ImageBlock()],
    )
    assert estimate_turn_chars(turn) == 10 + IMAGE_CHAR_ESTIMATE


def test_assistant_counts_text_thinking_and_arguments() -> None:
    turn = Turn(
        role=TurnRole.ASSISTANT,
        content=[
            TextBlock(text="abcd"),
            ThinkingBlock(thinking="xyz"),
            ToolCallBlock(id="c1", name="exec", arguments={"a": 1}),
        ],
    )
    # '{"a":1}' is 7 chars
    assert estimate_turn_chars(turn) == 4 + 3 + 7


def test_system_turn_has_fixed_cost() -> None:
    assert estimate_turn_chars(Turn(role=TurnRole.SYSTEM, content="x" * 5000)) == 256


def test_context_sum() -> None:
    turns = [Turn(role=TurnRole.USER, content="ab"), Turn(role=TurnRole.USER, content="cde")]
    assert estimate_context_chars(turns) == 5


def test_tokens_to_chars() -> None:
    assert tokens_to_chars(1000) == 4000


def test_joined_length_empty() -> None:
    assert estimate_joined_text_length([]) == 0


def test_head_spans_segments() -> None:
    assert take_head_from_joined_text(["abc", "def"], 5) == "abc\nd"
    assert take_head_from_joined_text(["abc", "def"], 4) == "abc\n"
    assert take_head_from_joined_text(["abc"], 0) == ""


def test_tail_spans_segments() -> None:
    assert take_tail_from_joined_text(["abc", "def"], 5) == "c\ndef"
    assert take_tail_from_joined_text(["abc", "def"], 3) == "def"
    assert take_tail_from_joined_text(["abc", "def"], 100) == "abc\ndef"
