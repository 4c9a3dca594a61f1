"""Browser snapshot expiry — retire stale page snapshots from the transcript."""

from __future__ import annotations

import logging

from ..types import Turn, TurnRole
from .runtime import (
    SnapshotExpiryRuntime,
    get_expired_snapshot_ids,
    increment_snapshot_counters,
    mark_snapshots_expired,
    register_snapshot,
    supersede_tracked_snapshots,
)
from .tools import is_snapshot_tool_result

log = logging.getLogger(__name__)

# Must stay constant for prompt caching: never interpolate counts or times.
SNAPSHOT_EXPIRED_PLACEHOLDER = "[Browser snapshot expired - content cleared]"


def expire_snapshots(turns: list[Turn], runtime: SnapshotExpiryRuntime) -> list[Turn]:
    """Expire browser snapshots past their threshold or superseded by a newer one.

    A snapshot expires once ``tool_calls`` new tool results and user messages
    have arrived since it was registered, or immediately when a newer snapshot
    appears. Only the newest snapshot is ever tracked. Mutates ``runtime``.

    Returns ``turns`` itself when nothing expired.
    """
    settings = runtime.settings
    if not settings.enabled:
        return turns

    tool_results = sum(1 for t in turns if t.role == TurnRole.TOOL_RESULT)
    user_messages = sum(1 for t in turns if t.role == TurnRole.USER)
    increment = max(0, tool_results - runtime.last_tool_result_count) + max(
        0, user_messages - runtime.last_user_message_count
    )
    runtime.last_tool_result_count = tool_results
    runtime.last_user_message_count = user_messages

    if increment > 0:
        increment_snapshot_counters(runtime, increment)

    new_ids: list[str] = []
    for turn in turns:
        if turn.role != TurnRole.TOOL_RESULT or not turn.tool_call_id:
            continue
        tool_call_id = turn.tool_call_id
        if tool_call_id in runtime.tracker or tool_call_id in runtime.expired_ids:
            continue
        if tool_call_id in new_ids:
            continue
        if is_snapshot_tool_result(turn, turns, heuristic_fallback=settings.heuristic_fallback):
            new_ids.append(tool_call_id)

    if new_ids and runtime.tracker:
        supersede_tracked_snapshots(runtime)

    expired = list(new_ids[:-1])
    if new_ids:
        register_snapshot(runtime, new_ids[-1])
    expired.extend(get_expired_snapshot_ids(runtime))

    if not expired:
        return turns

    log.info("Browser snapshot expired: %d", len(expired))
    expired_set = set(expired)
    mark_snapshots_expired(runtime, expired)

    result: list[Turn] | None = None
    for i, turn in enumerate(turns):
        if turn.role != TurnRole.TOOL_RESULT or turn.tool_call_id not in expired_set:
            continue
        if result is None:
            result = list(turns)
        result[i] = turn.with_text(SNAPSHOT_EXPIRED_PLACEHOLDER)
    return result if result is not None else turns
