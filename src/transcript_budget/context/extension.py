"""Turn hook — run snapshot expiry and tiered pruning before each model call."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..types import Turn
from . import cache_ttl
from .persistence import append_snapshot_state
from .runtime import RuntimeRegistry
from .session import SessionHandle
from .snapshot_expiry import expire_snapshots
from .tool_pruning import prune_tool_results

log = logging.getLogger(__name__)


@dataclass
class TurnContext:
    """What the host hands the hook alongside the transcript."""

    session: SessionHandle
    model_context_window: int | None = None


class ContextPruningHook:
    """Callable invoked once per model turn with the full transcript.

    Returns a replacement transcript, or None when nothing changed. Errors never
    propagate: the turn proceeds with the original transcript.
    """

    def __init__(self, registry: RuntimeRegistry) -> None:
        self._registry = registry

    def __call__(self, turns: list[Turn], ctx: TurnContext) -> list[Turn] | None:
        try:
            return self._process(turns, ctx)
        except Exception:
            log.exception("Context pruning hook failed; leaving transcript unchanged")
            return None

    def _process(self, turns: list[Turn], ctx: TurnContext) -> list[Turn] | None:
        session_id = ctx.session.session_id
        current = turns

        # Snapshot expiry runs regardless of the pruning mode.
        snapshots = self._registry.get_snapshot_expiry(session_id)
        if snapshots is not None and snapshots.settings.enabled:
            expired_before = len(snapshots.expired_ids)
            current = expire_snapshots(current, snapshots)
            if len(snapshots.expired_ids) > expired_before:
                append_snapshot_state(ctx.session, snapshots.expired_ids)

        pruning = self._registry.get_pruning(session_id)
        if pruning is not None and pruning.settings.mode == "cache-ttl":
            ttl_ms = pruning.settings.ttl_ms
            last_touch = pruning.last_cache_touch_at
            now = cache_ttl.now_ms()
            if last_touch and ttl_ms > 0 and now - last_touch >= ttl_ms:
                pruned = prune_tool_results(
                    current,
                    pruning.settings,
                    context_window_tokens=pruning.context_window_tokens or ctx.model_context_window,
                    is_tool_prunable=pruning.is_tool_prunable,
                )
                if pruned is not current:
                    current = pruned
                    pruning.last_cache_touch_at = now

        if current is turns:
            return None
        return current
