"""Per-session engine state and the registry that holds it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from ..config import ContextPruningSettings, SnapshotExpirySettings
from .snapshot_state import (
    EXPIRED,
    UNTRACKED,
    SnapshotEvent,
    SnapshotState,
    SnapshotStatus,
    reduce_snapshot,
)


@dataclass
class ContextPruningRuntime:
    settings: ContextPruningSettings
    is_tool_prunable: Callable[[str], bool]
    context_window_tokens: int | None = None
    last_cache_touch_at: int | None = None


@dataclass(frozen=True)
class TrackerEntry:
    """A browser snapshot being counted towards expiry."""

    tool_call_id: str
    calls_since: int = 0


@dataclass
class SnapshotExpiryRuntime:
    """Snapshot expiry state for one session.

    ``expired_ids`` only ever grows; it includes ids loaded from persisted
    session state.
    """

    settings: SnapshotExpirySettings
    tracker: dict[str, TrackerEntry] = field(default_factory=dict)
    expired_ids: set[str] = field(default_factory=set)
    last_tool_result_count: int = 0
    last_user_message_count: int = 0

    def state_of(self, tool_call_id: str) -> SnapshotState:
        if tool_call_id in self.expired_ids:
            return EXPIRED
        entry = self.tracker.get(tool_call_id)
        if entry is None:
            return UNTRACKED
        return SnapshotState(SnapshotStatus.TRACKED, entry.calls_since)

    def apply(self, tool_call_id: str, event: SnapshotEvent, count: int = 0) -> SnapshotState:
        """Run ``event`` through the reducer and store the resulting state."""
        state = reduce_snapshot(
            self.state_of(tool_call_id),
            event,
            threshold=self.settings.tool_calls,
            count=count,
        )
        if state.status == SnapshotStatus.TRACKED:
            self.tracker[tool_call_id] = TrackerEntry(tool_call_id, state.calls_since)
        elif state.status == SnapshotStatus.EXPIRED:
            self.tracker.pop(tool_call_id, None)
            self.expired_ids.add(tool_call_id)
        return state


def register_snapshot(runtime: SnapshotExpiryRuntime, tool_call_id: str) -> None:
    """Start tracking a snapshot. Tracked or expired ids are left alone."""
    runtime.apply(tool_call_id, SnapshotEvent.OBSERVED)


def increment_snapshot_counters(runtime: SnapshotExpiryRuntime, count: int = 1) -> None:
    for tool_call_id in list(runtime.tracker):
        runtime.apply(tool_call_id, SnapshotEvent.TURNS_ELAPSED, count)


def supersede_tracked_snapshots(runtime: SnapshotExpiryRuntime) -> None:
    for tool_call_id in list(runtime.tracker):
        runtime.apply(tool_call_id, SnapshotEvent.SUPERSEDED)


def get_expired_snapshot_ids(runtime: SnapshotExpiryRuntime) -> list[str]:
    """Tracked snapshots that reached the expiry threshold."""
    threshold = runtime.settings.tool_calls
    return [
        tool_call_id
        for tool_call_id in runtime.tracker
        if runtime.state_of(tool_call_id).is_due(threshold)
    ]


def mark_snapshots_expired(runtime: SnapshotExpiryRuntime, tool_call_ids: Iterable[str]) -> None:
    for tool_call_id in tool_call_ids:
        runtime.apply(tool_call_id, SnapshotEvent.EXPIRED)


class RuntimeRegistry:
    """Session id → engine runtime values. Owned by the caller."""

    def __init__(self) -> None:
        self._pruning: dict[str, ContextPruningRuntime] = {}
        self._snapshots: dict[str, SnapshotExpiryRuntime] = {}

    def set_pruning(self, session_id: str, value: ContextPruningRuntime | None) -> None:
        if value is None:
            self._pruning.pop(session_id, None)
        else:
            self._pruning[session_id] = value

    def get_pruning(self, session_id: str) -> ContextPruningRuntime | None:
        return self._pruning.get(session_id)

    def set_snapshot_expiry(self, session_id: str, value: SnapshotExpiryRuntime | None) -> None:
        if value is None:
            self._snapshots.pop(session_id, None)
        else:
            self._snapshots[session_id] = value

    def get_snapshot_expiry(self, session_id: str) -> SnapshotExpiryRuntime | None:
        return self._snapshots.get(session_id)

    def discard(self, session_id: str) -> None:
        """Drop all state for a finished session."""
        self._pruning.pop(session_id, None)
        self._snapshots.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._pruning or session_id in self._snapshots
