"""Prompt-cache TTL tracking — when the provider cache was last written."""

from __future__ import annotations

import logging
import time

from .session import SessionHandle

log = logging.getLogger(__name__)

CACHE_TTL_CUSTOM_TYPE = "transcript-budget.cache-ttl"

_ELIGIBLE_PROVIDERS = {"anthropic"}
_ELIGIBLE_MODEL_PREFIXES = ("anthropic/",)


def now_ms() -> int:
    """Current epoch milliseconds. Patchable for tests."""
    return int(time.time() * 1000)


def is_cache_ttl_eligible_provider(provider: str, model_id: str) -> bool:
    """Providers whose prompt cache expires on a TTL (Anthropic, directly or via a router)."""
    p = (provider or "").strip().lower()
    if p in _ELIGIBLE_PROVIDERS:
        return True
    m = (model_id or "").strip().lower()
    return p == "openrouter" and m.startswith(_ELIGIBLE_MODEL_PREFIXES)


def read_last_cache_ttl_timestamp(session: SessionHandle) -> int | None:
    try:
        return _latest_timestamp(session.get_entries())
    except Exception as exc:
        log.warning("Could not read cache touch time: %s", exc)
        return None


def _latest_timestamp(entries: list) -> int | None:
    for entry in reversed(entries):
        if not isinstance(entry, dict):
            continue
        if entry.get("type") != "custom" or entry.get("customType") != CACHE_TTL_CUSTOM_TYPE:
            continue
        data = entry.get("data")
        ts = data.get("timestamp") if isinstance(data, dict) else None
        if isinstance(ts, int) and not isinstance(ts, bool) and ts > 0:
            return ts
    return None


def append_cache_ttl_timestamp(session: SessionHandle, timestamp: int | None = None) -> None:
    try:
        session.append_custom_entry(
            CACHE_TTL_CUSTOM_TYPE, {"timestamp": timestamp if timestamp is not None else now_ms()}
        )
    except Exception as exc:
        log.warning("Could not persist cache touch time: %s", exc)
