"""Size estimation — cheap character-count proxy for transcript cost."""

from __future__ import annotations

import json
from typing import Any, Sequence

from ..types import Turn, TurnRole

# Rough chars-per-token for estimation
CHARS_PER_TOKEN_ESTIMATE = 4

# Image blocks are never trimmed, but they still count against the window so
# image-heavy transcripts start trimming text tool results earlier.
IMAGE_CHAR_ESTIMATE = 8_000

_UNKNOWN_ARGS_CHARS = 128
_OTHER_ROLE_CHARS = 256


def tokens_to_chars(tokens: int) -> int:
    return tokens * CHARS_PER_TOKEN_ESTIMATE


def collect_text_segments(blocks: Sequence[Any]) -> list[str]:
    return [b.text for b in blocks if b.type == "text"]


def has_image_blocks(blocks: Sequence[Any]) -> bool:
    return any(b.type == "image" for b in blocks)


def estimate_joined_text_length(parts: Sequence[str]) -> int:
    """Length of ``"\\n".join(parts)`` without building the string."""
    if not parts:
        return 0
    return sum(len(p) for p in parts) + len(parts) - 1


def take_head_from_joined_text(parts: Sequence[str], max_chars: int) -> str:
    """First ``max_chars`` characters of the newline-joined parts."""
    if max_chars <= 0 or not parts:
        return ""
    remaining = max_chars
    out: list[str] = []
    for i, p in enumerate(parts):
        if remaining <= 0:
            break
        if i > 0:
            out.append("\n")
            remaining -= 1
            if remaining <= 0:
                break
        out.append(p[:remaining])
        remaining -= min(len(p), remaining)
    return "".join(out)


def take_tail_from_joined_text(parts: Sequence[str], max_chars: int) -> str:
    """Last ``max_chars`` characters of the newline-joined parts."""
    if max_chars <= 0 or not parts:
        return ""
    remaining = max_chars
    out: list[str] = []
    for i in range(len(parts) - 1, -1, -1):
        p = parts[i]
        if len(p) <= remaining:
            out.append(p)
            remaining -= len(p)
        else:
            out.append(p[len(p) - remaining:])
            remaining = 0
            break
        if remaining > 0 and i > 0:
            out.append("\n")
            remaining -= 1
        if remaining <= 0:
            break
    out.reverse()
    return "".join(out)


def _media_text_chars(blocks: Sequence[Any]) -> int:
    parts = collect_text_segments(blocks)
    images = sum(1 for b in blocks if b.type == "image")
    return estimate_joined_text_length(parts) + images * IMAGE_CHAR_ESTIMATE


def estimate_turn_chars(turn: Turn) -> int:
    """Approximate cost of a single turn in characters."""
    if turn.role in (TurnRole.USER, TurnRole.TOOL_RESULT):
        if isinstance(turn.content, str):
            return len(turn.content)
        return _media_text_chars(turn.content)

    if turn.role == TurnRole.ASSISTANT:
        chars = 0
        for b in turn.blocks:
            if b.type == "text":
                chars += len(b.text)
            elif b.type == "thinking":
                chars += len(b.thinking)
            elif b.type == "toolCall":
                try:
                    chars += len(json.dumps(b.arguments or {}, separators=(",", ":")))
                except (TypeError, ValueError):
                    chars += _UNKNOWN_ARGS_CHARS
        return chars

    return _OTHER_ROLE_CHARS


def estimate_context_chars(turns: Sequence[Turn]) -> int:
    return sum(estimate_turn_chars(t) for t in turns)
