"""Per-session runtime setup from configuration."""

from __future__ import annotations

import logging

from ..config import BudgetConfig, ContextPruningSettings, SnapshotExpirySettings
from .cache_ttl import is_cache_ttl_eligible_provider, read_last_cache_ttl_timestamp
from .persistence import read_snapshot_expired_ids
from .runtime import ContextPruningRuntime, RuntimeRegistry, SnapshotExpiryRuntime
from .session import SessionHandle
from .tools import make_tool_prunable_predicate
from .window_guard import resolve_context_window

log = logging.getLogger(__name__)


def setup_session_runtime(
    registry: RuntimeRegistry,
    session: SessionHandle,
    *,
    config: BudgetConfig,
    provider: str,
    model_id: str,
    model_context_window: int | None = None,
) -> bool:
    """Register snapshot expiry and pruning runtimes for a session.

    Snapshot expiry is set up unless disabled; its expired ids are reloaded from
    the session log. Pruning additionally needs ``mode: cache-ttl`` and a
    provider whose prompt cache expires on a TTL.

    Returns True when the turn hook has anything to do for this session.
    """
    raw = config.context_pruning
    session_id = session.session_id

    snapshot_settings = SnapshotExpirySettings.from_dict(raw)
    if snapshot_settings.enabled:
        expired_ids = read_snapshot_expired_ids(session)
        if expired_ids:
            log.info("Loaded persisted browser snapshot state: %d expired", len(expired_ids))
        registry.set_snapshot_expiry(
            session_id,
            SnapshotExpiryRuntime(settings=snapshot_settings, expired_ids=expired_ids),
        )

    settings = ContextPruningSettings.from_dict(raw)
    if settings is None or not is_cache_ttl_eligible_provider(provider, model_id):
        return snapshot_settings.enabled

    window = resolve_context_window(
        model_context_window=model_context_window,
        config_context_tokens=config.context_tokens,
        default_tokens=config.default_context_tokens,
    )
    registry.set_pruning(
        session_id,
        ContextPruningRuntime(
            settings=settings,
            is_tool_prunable=make_tool_prunable_predicate(settings.tools),
            context_window_tokens=window.tokens,
            last_cache_touch_at=read_last_cache_ttl_timestamp(session),
        ),
    )
    return True
