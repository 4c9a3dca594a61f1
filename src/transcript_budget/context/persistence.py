"""Persist expired browser snapshot ids in the session log so they survive restarts."""

from __future__ import annotations

import logging
import time
from typing import Iterable

from ..types import SnapshotStateRecord
from .session import SessionHandle

log = logging.getLogger(__name__)

SNAPSHOT_STATE_CUSTOM_TYPE = "transcript-budget.snapshot-expiry"


def read_snapshot_expired_ids(session: SessionHandle) -> set[str]:
    """Expired ids from the most recent snapshot state record, or an empty set."""
    try:
        return _latest_expired_ids(session.get_entries())
    except Exception as exc:
        log.warning("Could not read snapshot state: %s", exc)
        return set()


def _latest_expired_ids(entries: list) -> set[str]:
    for entry in reversed(entries):
        if not isinstance(entry, dict):
            continue
        if entry.get("type") != "custom" or entry.get("customType") != SNAPSHOT_STATE_CUSTOM_TYPE:
            continue
        data = entry.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("expired_ids"), list):
            continue
        return {i for i in data["expired_ids"] if isinstance(i, str)}
    return set()


def append_snapshot_state(session: SessionHandle, expired_ids: Iterable[str]) -> None:
    """Append the current expired id set. Best effort: failures are logged and dropped."""
    ids = sorted(expired_ids)
    if not ids:
        return
    try:
        record = SnapshotStateRecord(timestamp=int(time.time() * 1000), expired_ids=ids)
        session.append_custom_entry(SNAPSHOT_STATE_CUSTOM_TYPE, record.model_dump())
    except Exception as exc:
        log.warning("Could not persist snapshot state: %s", exc)
