"""Tool result pruning — trim large tool outputs to save context tokens."""

from __future__ import annotations

from typing import Callable, Sequence

from ..config import ContextPruningSettings
from ..types import Turn, TurnRole
from .estimate import (
    collect_text_segments,
    estimate_context_chars,
    estimate_joined_text_length,
    estimate_turn_chars,
    has_image_blocks,
    take_head_from_joined_text,
    take_tail_from_joined_text,
    tokens_to_chars,
)
from .tools import make_tool_prunable_predicate


def prune_tool_results(
    turns: list[Turn],
    settings: ContextPruningSettings,
    *,
    context_window_tokens: int | None,
    is_tool_prunable: Callable[[str], bool] | None = None,
) -> list[Turn]:
    """Prune tool result content to reduce context size.

    - Soft trim: large tool results → keep head + tail, truncate middle
    - Hard clear: oldest tool results → replace with placeholder, only while
      the transcript stays above ``hard_clear_ratio``
    - Protects the most recent ``keep_last_assistants`` assistant turns and
      everything before the first user turn

    Returns ``turns`` itself when nothing changed.
    """
    if not context_window_tokens or context_window_tokens <= 0:
        return turns
    char_window = tokens_to_chars(context_window_tokens)

    cutoff = find_assistant_cutoff_index(turns, settings.keep_last_assistants)
    if cutoff is None:
        return turns

    # Identity reads before the first user message are never pruned.
    first_user = find_first_user_index(turns)
    start = len(turns) if first_user is None else first_user

    if is_tool_prunable is None:
        is_tool_prunable = make_tool_prunable_predicate(settings.tools)

    total_chars = estimate_context_chars(turns)
    ratio = total_chars / char_window
    if ratio < settings.soft_trim_ratio:
        return turns

    prunable_indexes: list[int] = []
    result: list[Turn] | None = None

    for i in range(start, cutoff):
        turn = turns[i]
        if turn.role != TurnRole.TOOL_RESULT:
            continue
        if not is_tool_prunable(turn.tool_name or ""):
            continue
        if has_image_blocks(turn.blocks):
            continue
        prunable_indexes.append(i)

        trimmed = soft_trim_tool_result(turn, settings)
        if trimmed is None:
            continue
        total_chars += estimate_turn_chars(trimmed) - estimate_turn_chars(turn)
        if result is None:
            result = list(turns)
        result[i] = trimmed

    after_soft_trim = result if result is not None else turns
    ratio = total_chars / char_window
    if ratio < settings.hard_clear_ratio or not settings.hard_clear.enabled:
        return after_soft_trim

    prunable_chars = sum(estimate_turn_chars(after_soft_trim[i]) for i in prunable_indexes)
    if prunable_chars < settings.min_prunable_tool_chars:
        return after_soft_trim

    for i in prunable_indexes:
        if ratio < settings.hard_clear_ratio:
            break
        turn = after_soft_trim[i] if result is None else result[i]
        cleared = turn.with_text(settings.hard_clear.placeholder)
        if result is None:
            result = list(turns)
        result[i] = cleared
        total_chars += estimate_turn_chars(cleared) - estimate_turn_chars(turn)
        ratio = total_chars / char_window

    return result if result is not None else turns


def find_assistant_cutoff_index(turns: Sequence[Turn], keep_last_assistants: int) -> int | None:
    """Index of the oldest protected assistant turn.

    ``keep_last_assistants <= 0`` leaves nothing protected. None means there
    are not enough assistant turns to establish a protected tail.
    """
    if keep_last_assistants <= 0:
        return len(turns)
    remaining = keep_last_assistants
    for i in range(len(turns) - 1, -1, -1):
        if turns[i].role != TurnRole.ASSISTANT:
            continue
        remaining -= 1
        if remaining == 0:
            return i
    return None


def find_first_user_index(turns: Sequence[Turn]) -> int | None:
    for i, turn in enumerate(turns):
        if turn.role == TurnRole.USER:
            return i
    return None


def soft_trim_tool_result(turn: Turn, settings: ContextPruningSettings) -> Turn | None:
    """Head + tail excerpt of a large text tool result, or None if unchanged."""
    blocks = turn.blocks
    if has_image_blocks(blocks):
        return None

    parts = collect_text_segments(blocks)
    raw_len = estimate_joined_text_length(parts)
    if raw_len <= settings.soft_trim.max_chars:
        return None

    head_chars = max(0, settings.soft_trim.head_chars)
    tail_chars = max(0, settings.soft_trim.tail_chars)
    if head_chars + tail_chars >= raw_len:
        return None

    head = take_head_from_joined_text(parts, head_chars)
    tail = take_tail_from_joined_text(parts, tail_chars)
    note = (
        f"\n\n[Tool result trimmed: kept first {head_chars} chars "
        f"and last {tail_chars} chars of {raw_len} chars.]"
    )
    return turn.with_text(f"{head}\n...\n{tail}{note}")
