"""Pre-compaction memory flush — decide when the agent should persist context."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..types import FlushLedgerEntry

_SILENT_TOKEN = "NO_REPLY"

DEFAULT_SOFT_THRESHOLD_TOKENS = 4000
DEFAULT_RESERVE_FLOOR_TOKENS = 20000
DEFAULT_CONTEXT_TOKENS = 200_000

DEFAULT_FLUSH_PROMPT = (
    "Pre-compaction memory flush. "
    "Store durable memories now (use memory/YYYY-MM-DD.md; create memory/ if needed). "
    f"If nothing to store, reply with {_SILENT_TOKEN}."
)

DEFAULT_FLUSH_SYSTEM_PROMPT = (
    "Pre-compaction memory flush turn. "
    "The session is near auto-compaction; capture durable memories to disk. "
    f"You may reply, but usually {_SILENT_TOKEN} is correct."
)

_CURRENT_TIME_PREFIX = "Current time:"


@dataclass
class MemoryFlushSettings:
    enabled: bool = True
    soft_threshold_tokens: int = DEFAULT_SOFT_THRESHOLD_TOKENS
    reserve_tokens_floor: int = DEFAULT_RESERVE_FLOOR_TOKENS
    prompt: str = DEFAULT_FLUSH_PROMPT
    system_prompt: str = DEFAULT_FLUSH_SYSTEM_PROMPT
    always_execute: bool = False


def _ensure_silent_token(text: str) -> str:
    if _SILENT_TOKEN in text:
        return text
    return f"{text}\n\nIf no user-visible reply is needed, start with {_SILENT_TOKEN}."


def _text_or(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _non_negative_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return max(0, int(value))


def resolve_memory_flush_settings(cfg: dict | None = None) -> MemoryFlushSettings | None:
    """Effective flush settings from a ``memory_flush`` config dict, or None when disabled."""
    cfg = cfg or {}
    if cfg.get("enabled") is False:
        return None

    return MemoryFlushSettings(
        enabled=True,
        soft_threshold_tokens=_non_negative_int(
            cfg.get("soft_threshold_tokens"), DEFAULT_SOFT_THRESHOLD_TOKENS
        ),
        reserve_tokens_floor=_non_negative_int(
            cfg.get("reserve_tokens_floor"), DEFAULT_RESERVE_FLOOR_TOKENS
        ),
        prompt=_ensure_silent_token(_text_or(cfg.get("prompt"), DEFAULT_FLUSH_PROMPT)),
        system_prompt=_ensure_silent_token(
            _text_or(cfg.get("system_prompt"), DEFAULT_FLUSH_SYSTEM_PROMPT)
        ),
        always_execute=cfg.get("always_execute") is True,
    )


def resolve_memory_flush_prompt_for_run(
    prompt: str,
    *,
    user_timezone: str = "UTC",
    now: datetime | None = None,
) -> str:
    """Fill ``YYYY-MM-DD`` with the user's local date and append the current time."""
    try:
        tz = ZoneInfo(user_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        tz = ZoneInfo("UTC")
        user_timezone = "UTC"
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz)

    text = prompt.replace("YYYY-MM-DD", local.strftime("%Y-%m-%d"))
    if _CURRENT_TIME_PREFIX in text:
        return text
    stamp = local.strftime("%A, %B %d, %Y %H:%M")
    return f"{text}\n{_CURRENT_TIME_PREFIX} {stamp} ({user_timezone})"


def resolve_memory_flush_context_window_tokens(
    *,
    model_context_window: int | None = None,
    agent_cfg_context_tokens: int | None = None,
    default_tokens: int = DEFAULT_CONTEXT_TOKENS,
) -> int:
    """Model window if known, else the configured agent limit, else the default."""
    if model_context_window and model_context_window > 0:
        return model_context_window
    if agent_cfg_context_tokens and agent_cfg_context_tokens > 0:
        return agent_cfg_context_tokens
    return default_tokens


def should_run_memory_flush(
    entry: FlushLedgerEntry | None,
    *,
    context_window_tokens: int,
    reserve_tokens_floor: int = DEFAULT_RESERVE_FLOOR_TOKENS,
    soft_threshold_tokens: int = DEFAULT_SOFT_THRESHOLD_TOKENS,
) -> bool:
    """Check if a memory flush should fire before compaction.

    Triggers when: total_tokens >= context_window - reserve_floor - soft_threshold
    Never on a missing, unmeasured or stale total. Only once per compaction cycle.
    """
    if entry is None:
        return False
    total_tokens = entry.total_tokens
    if not total_tokens or total_tokens <= 0:
        return False
    if entry.total_tokens_fresh is False:
        return False
    threshold = max(0, context_window_tokens - reserve_tokens_floor - soft_threshold_tokens)
    if threshold <= 0 or total_tokens < threshold:
        return False
    # One flush per compaction cycle
    if (
        entry.memory_flush_compaction_count is not None
        and entry.memory_flush_compaction_count == entry.compaction_count
    ):
        return False
    return True


SILENT_TOKEN = _SILENT_TOKEN
