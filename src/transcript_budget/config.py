"""Configuration dataclasses for context pruning and snapshot expiry."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Literal

DEFAULT_HARD_CLEAR_PLACEHOLDER = "[Old tool result content cleared]"

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?$", re.IGNORECASE)
_UNIT_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
}


def parse_duration_ms(raw: str, *, default_unit: str = "m") -> int:
    """Parse a duration like ``"5m"``, ``"90s"`` or ``"10"`` into milliseconds.

    A bare number uses ``default_unit``. Raises ValueError on anything else.
    """
    match = _DURATION_RE.match(str(raw).strip())
    if not match:
        raise ValueError(f"Invalid duration: {raw!r}")
    value = float(match.group(1))
    unit = (match.group(2) or default_unit).lower()
    return int(value * _UNIT_MS[unit])


def _number(value: Any) -> float | None:
    """Return value as a finite number, or None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _count(value: Any, default: int, *, minimum: int = 0) -> int:
    n = _number(value)
    if n is None:
        return default
    return max(minimum, math.floor(n))


def _ratio(value: Any, default: float) -> float:
    n = _number(value)
    if n is None:
        return default
    return min(1.0, max(0.0, float(n)))


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value]


@dataclass
class ToolMatch:
    """Tool name glob lists. Deny overrides allow; empty allow means all."""

    allow: list[str] = field(default_factory=list)
    deny: list[str] = field(default_factory=list)


@dataclass
class SoftTrimSettings:
    max_chars: int = 4_000
    head_chars: int = 1_500
    tail_chars: int = 1_500


@dataclass
class HardClearSettings:
    enabled: bool = True
    placeholder: str = DEFAULT_HARD_CLEAR_PLACEHOLDER


@dataclass
class ContextPruningSettings:
    """Effective settings for tiered tool-result pruning."""

    mode: Literal["cache-ttl"] = "cache-ttl"
    ttl_ms: int = 5 * 60 * 1000
    keep_last_assistants: int = 3
    soft_trim_ratio: float = 0.3
    hard_clear_ratio: float = 0.5
    min_prunable_tool_chars: int = 50_000
    tools: ToolMatch = field(default_factory=ToolMatch)
    soft_trim: SoftTrimSettings = field(default_factory=SoftTrimSettings)
    hard_clear: HardClearSettings = field(default_factory=HardClearSettings)

    @classmethod
    def from_dict(cls, raw: Any) -> ContextPruningSettings | None:
        """Build from a ``context_pruning`` config dict.

        Returns None unless ``mode`` is ``"cache-ttl"``. Invalid values keep
        their defaults.
        """
        if not isinstance(raw, dict) or raw.get("mode") != "cache-ttl":
            return None

        s = cls()
        ttl = raw.get("ttl")
        if isinstance(ttl, str):
            try:
                s.ttl_ms = parse_duration_ms(ttl, default_unit="m")
            except ValueError:
                pass

        s.keep_last_assistants = _count(raw.get("keep_last_assistants"), s.keep_last_assistants)
        s.soft_trim_ratio = _ratio(raw.get("soft_trim_ratio"), s.soft_trim_ratio)
        s.hard_clear_ratio = _ratio(raw.get("hard_clear_ratio"), s.hard_clear_ratio)
        s.min_prunable_tool_chars = _count(
            raw.get("min_prunable_tool_chars"), s.min_prunable_tool_chars
        )

        tools = raw.get("tools")
        if isinstance(tools, dict):
            s.tools = ToolMatch(
                allow=_string_list(tools.get("allow")),
                deny=_string_list(tools.get("deny")),
            )

        st = raw.get("soft_trim")
        if isinstance(st, dict):
            s.soft_trim.max_chars = _count(st.get("max_chars"), s.soft_trim.max_chars)
            s.soft_trim.head_chars = _count(st.get("head_chars"), s.soft_trim.head_chars)
            s.soft_trim.tail_chars = _count(st.get("tail_chars"), s.soft_trim.tail_chars)

        hc = raw.get("hard_clear")
        if isinstance(hc, dict):
            if isinstance(hc.get("enabled"), bool):
                s.hard_clear.enabled = hc["enabled"]
            placeholder = hc.get("placeholder")
            if isinstance(placeholder, str) and placeholder.strip():
                s.hard_clear.placeholder = placeholder.strip()

        return s


@dataclass
class SnapshotExpirySettings:
    """Browser snapshot expiry. Independent of the pruning mode."""

    enabled: bool = True
    tool_calls: int = 3
    heuristic_fallback: bool = False

    @classmethod
    def from_dict(cls, raw: Any) -> SnapshotExpirySettings:
        """Build from a ``context_pruning`` config dict.

        Reads ``browser_snapshot.expiry``; always returns settings.
        """
        s = cls()
        if not isinstance(raw, dict):
            return s
        snapshot = raw.get("browser_snapshot")
        expiry = snapshot.get("expiry") if isinstance(snapshot, dict) else None
        if not isinstance(expiry, dict):
            return s

        if isinstance(expiry.get("enabled"), bool):
            s.enabled = expiry["enabled"]
        s.tool_calls = _count(expiry.get("tool_calls"), s.tool_calls, minimum=1)
        if isinstance(expiry.get("heuristic_fallback"), bool):
            s.heuristic_fallback = expiry["heuristic_fallback"]
        return s


@dataclass
class BudgetConfig:
    """Top-level configuration."""

    context_tokens: int | None = None
    default_context_tokens: int = 200_000
    user_timezone: str = "UTC"
    session_dir: str = "~/.transcript-budget/sessions"
    context_pruning: dict[str, Any] = field(default_factory=dict)
    memory_flush: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> BudgetConfig:
        """Build from a config dict, filling defaults for missing keys."""
        ctx = data.get("context") or {}
        tokens = _number(ctx.get("context_tokens"))
        return cls(
            context_tokens=int(tokens) if tokens and tokens > 0 else None,
            default_context_tokens=_count(ctx.get("default_context_tokens"), 200_000, minimum=1),
            user_timezone=data.get("user_timezone") or "UTC",
            session_dir=ctx.get("session_dir") or "~/.transcript-budget/sessions",
            context_pruning=data.get("context_pruning") or {},
            memory_flush=data.get("memory_flush") or {},
        )
