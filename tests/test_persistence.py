"""Tests for the JSONL session log and persisted snapshot state."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from transcript_budget.context.cache_ttl import (
    CACHE_TTL_CUSTOM_TYPE,
    append_cache_ttl_timestamp,
    is_cache_ttl_eligible_provider,
    read_last_cache_ttl_timestamp,
)
from transcript_budget.context.persistence import (
    SNAPSHOT_STATE_CUSTOM_TYPE,
    append_snapshot_state,
    read_snapshot_expired_ids,
)
from transcript_budget.context.session import SessionHandle, SessionLog, SessionStore
from transcript_budget.types import TextBlock, ToolCallBlock, Turn, TurnRole


class _MemorySession:
    """In-memory session handle."""

    def __init__(self, entries: list[dict[str, Any]] | None = None) -> None:
        self.entries = entries or []

    @property
    def session_id(self) -> str:
        return "mem"

    def get_entries(self) -> list[dict[str, Any]]:
        return self.entries

    def append_custom_entry(self, custom_type: str, data: Any) -> None:
        self.entries.append({"type": "custom", "customType": custom_type, "data": data})


class _BrokenSession(_MemorySession):
    def get_entries(self) -> list[dict[str, Any]]:
        raise OSError("disk gone")

    def append_custom_entry(self, custom_type: str, data: Any) -> None:
        raise OSError("disk full")


def _log(tmp_path: Path, session_id: str = "s1") -> SessionLog:
    store = SessionStore(tmp_path)
    return SessionLog(store, store.create_session(session_id))


# -- snapshot state --


def test_reads_latest_snapshot_record() -> None:
    session = _MemorySession([
        {"type": "custom", "customType": "other", "data": {}},
        {"type": "custom", "customType": SNAPSHOT_STATE_CUSTOM_TYPE,
         "data": {"timestamp": 1, "expired_ids": ["old"]}},
        {"type": "custom", "customType": SNAPSHOT_STATE_CUSTOM_TYPE,
         "data": {"timestamp": 2, "expired_ids": ["snap1", "snap2", 7]}},
    ])
    assert read_snapshot_expired_ids(session) == {"snap1", "snap2"}


def test_empty_when_no_record() -> None:
    assert read_snapshot_expired_ids(_MemorySession()) == set()


def test_read_failure_is_empty() -> None:
    assert read_snapshot_expired_ids(_BrokenSession()) == set()


def test_append_writes_record() -> None:
    session = _MemorySession()
    append_snapshot_state(session, {"snap2", "snap1"})

    assert len(session.entries) == 1
    entry = session.entries[0]
    assert entry["customType"] == SNAPSHOT_STATE_CUSTOM_TYPE
    assert entry["data"]["expired_ids"] == ["snap1", "snap2"]
    assert entry["data"]["timestamp"] > 0


def test_append_skips_empty_set() -> None:
    session = _MemorySession()
    append_snapshot_state(session, set())
    assert session.entries == []


def test_append_failure_is_swallowed() -> None:
    append_snapshot_state(_BrokenSession(), {"snap1"})


def test_expired_ids_survive_restart(tmp_path: Path) -> None:
    append_snapshot_state(_log(tmp_path), {"snap1"})
    reopened = _log(tmp_path)
    assert read_snapshot_expired_ids(reopened) == {"snap1"}


# -- session log --


def test_session_log_is_a_session_handle(tmp_path: Path) -> None:
    assert isinstance(_log(tmp_path), SessionHandle)


def test_messages_round_trip(tmp_path: Path) -> None:
    session = _log(tmp_path)
    session.append_message(Turn(role=TurnRole.USER, content="hi"))
    session.append_message(Turn(
        role=TurnRole.ASSISTANT,
        content=[ToolCallBlock(id="t1", name="browser", arguments={"action": "snapshot"})],
    ))
    session.append_message(Turn(
        role=TurnRole.TOOL_RESULT,
        tool_call_id="t1",
        tool_name="browser",
        content=[TextBlock(text="page")],
    ))
    session.append_custom_entry("other", {"x": 1})

    store = SessionStore(tmp_path)
    turns = store.read_messages(store.create_session("s1"))
    assert [t.role for t in turns] == [TurnRole.USER, TurnRole.ASSISTANT, TurnRole.TOOL_RESULT]
    assert turns[1].blocks[0].arguments == {"action": "snapshot"}
    assert turns[2].tool_call_id == "t1"
    assert session.entry.entry_count == 4


def test_missing_file_reads_empty(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    entry = store.create_session("nope")
    assert store.read_entries(entry) == []
    assert store.read_messages(entry) == []


def test_repair_drops_bad_lines(tmp_path: Path) -> None:
    session = _log(tmp_path)
    session.append_custom_entry("a", {})
    with open(session.entry.transcript_path, "a", encoding="utf-8") as f:
        f.write("{not json\n")
    session.append_custom_entry("b", {})

    store = SessionStore(tmp_path)
    assert store.repair_transcript(session.entry) == 1
    assert len(session.get_entries()) == 2
    assert Path(session.entry.transcript_path).with_suffix(".jsonl.bak").is_file()


# -- cache ttl --


def test_cache_ttl_round_trip(tmp_path: Path) -> None:
    session = _log(tmp_path)
    assert read_last_cache_ttl_timestamp(session) is None
    append_cache_ttl_timestamp(session, 1_000)
    append_cache_ttl_timestamp(session, 2_000)
    assert read_last_cache_ttl_timestamp(session) == 2_000
    assert session.get_entries()[-1]["customType"] == CACHE_TTL_CUSTOM_TYPE


def test_cache_ttl_eligible_providers() -> None:
    assert is_cache_ttl_eligible_provider("anthropic", "claude-sonnet") is True
    assert is_cache_ttl_eligible_provider("openrouter", "anthropic/claude-sonnet") is True
    assert is_cache_ttl_eligible_provider("openrouter", "openai/gpt-4o") is False
    assert is_cache_ttl_eligible_provider("openai", "gpt-4o") is False


# -- failure handling --


class _LockedSession(_MemorySession):
    def get_entries(self) -> list[dict[str, Any]]:
        raise RuntimeError("db locked")

    def append_custom_entry(self, custom_type: str, data: Any) -> None:
        raise RuntimeError("db locked")


def test_any_append_error_is_swallowed() -> None:
    session = _LockedSession()
    append_snapshot_state(session, {"snap1"})
    append_cache_ttl_timestamp(session, 1_000)


def test_any_read_error_is_empty() -> None:
    session = _LockedSession()
    assert read_snapshot_expired_ids(session) == set()
    assert read_last_cache_ttl_timestamp(session) is None


def test_non_dict_entries_are_skipped() -> None:
    session = _MemorySession([
        {"type": "custom", "customType": SNAPSHOT_STATE_CUSTOM_TYPE,
         "data": {"timestamp": 1, "expired_ids": ["snap1"]}},
        {"type": "custom", "customType": CACHE_TTL_CUSTOM_TYPE, "data": {"timestamp": 7}},
        "garbage",
        None,
    ])
    assert read_snapshot_expired_ids(session) == {"snap1"}
    assert read_last_cache_ttl_timestamp(session) == 7


def test_invalid_utf8_line_does_not_break_reads(tmp_path: Path) -> None:
    session = _log(tmp_path)
    append_snapshot_state(session, {"snap1"})
    with open(session.entry.transcript_path, "ab") as f:
        f.write(b'{"type":"custom"}\n\xff\xfe bad\n')

    assert read_snapshot_expired_ids(session) == {"snap1"}
    assert read_last_cache_ttl_timestamp(session) is None

    store = SessionStore(tmp_path)
    assert store.repair_transcript(session.entry) == 1
    assert read_snapshot_expired_ids(_log(tmp_path)) == {"snap1"}
