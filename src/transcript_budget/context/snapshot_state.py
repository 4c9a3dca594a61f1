"""Snapshot lifecycle — Untracked → Tracked → Expired, driven by explicit events."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class SnapshotStatus(str, Enum):
    UNTRACKED = "untracked"
    TRACKED = "tracked"
    EXPIRED = "expired"


class SnapshotEvent(str, Enum):
    OBSERVED = "observed"            # first seen in the transcript
    TURNS_ELAPSED = "turns_elapsed"  # new tool results / user messages arrived
    SUPERSEDED = "superseded"        # a newer snapshot appeared
    EXPIRED = "expired"              # content replaced with the placeholder


@dataclass(frozen=True)
class SnapshotState:
    status: SnapshotStatus = SnapshotStatus.UNTRACKED
    calls_since: int = 0

    def is_due(self, threshold: int) -> bool:
        return self.status == SnapshotStatus.TRACKED and self.calls_since >= threshold


UNTRACKED = SnapshotState()
EXPIRED = SnapshotState(SnapshotStatus.EXPIRED)


def reduce_snapshot(
    state: SnapshotState,
    event: SnapshotEvent,
    *,
    threshold: int,
    count: int = 0,
) -> SnapshotState:
    """Apply one event to a snapshot's state.

    EXPIRED is terminal. Events that do not apply to the current status leave
    it unchanged.
    """
    if state.status == SnapshotStatus.EXPIRED:
        return state

    if event == SnapshotEvent.EXPIRED:
        return EXPIRED

    if state.status == SnapshotStatus.UNTRACKED:
        if event == SnapshotEvent.OBSERVED:
            return SnapshotState(SnapshotStatus.TRACKED, 0)
        return state

    # TRACKED
    if event == SnapshotEvent.TURNS_ELAPSED and count > 0:
        return replace(state, calls_since=state.calls_since + count)
    if event == SnapshotEvent.SUPERSEDED:
        return replace(state, calls_since=max(state.calls_since, threshold))
    return state
