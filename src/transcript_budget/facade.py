"""Facade — single entry point for using transcript-budget as a package."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .config import BudgetConfig
from .context.cache_ttl import append_cache_ttl_timestamp, now_ms
from .context.extension import ContextPruningHook, TurnContext
from .context.extensions import setup_session_runtime
from .context.memory_flush import (
    MemoryFlushSettings,
    resolve_memory_flush_context_window_tokens,
    resolve_memory_flush_prompt_for_run,
    resolve_memory_flush_settings,
    should_run_memory_flush,
)
from .context.runtime import RuntimeRegistry
from .context.session import SessionLog, SessionStore
from .context.window_guard import apply_context_window_cap, check_context_window
from .types import FlushLedgerEntry, Turn


@dataclass
class Session:
    """Active session state. Passed to every per-turn call."""

    log: SessionLog
    provider: str
    model_id: str
    context_window_tokens: int
    messages: list[Turn] = field(default_factory=list)
    ledger: FlushLedgerEntry = field(default_factory=FlushLedgerEntry)

    @property
    def session_id(self) -> str:
        return self.log.session_id


@dataclass
class PreparedTurn:
    """Result of process_turn — ready to send to your LLM."""

    messages: list[Turn]
    modified: bool = False
    flush_prompt: str | None = None
    flush_system_prompt: str | None = None
    # Host should run the flush turn even where it would normally skip one.
    flush_always_execute: bool = False

    @property
    def should_flush(self) -> bool:
        return self.flush_prompt is not None


class TranscriptBudget:
    """High-level facade wiring snapshot expiry, pruning and flush decisions.

    Usage::

        budget = TranscriptBudget.from_config("CONFIG.yaml")
        session = budget.start_session(provider="anthropic", model_id="claude", model_context_window=200_000)

        # In your message loop:
        session.messages.append(user_turn)
        prepared = budget.process_turn(session)
        response = your_llm_call(prepared.messages)
        budget.record_usage(session, response.usage.total_tokens)
    """

    def __init__(
        self,
        *,
        config: BudgetConfig,
        sessions: SessionStore,
        registry: RuntimeRegistry | None = None,
    ) -> None:
        self._config = config
        self._sessions = sessions
        self._registry = registry or RuntimeRegistry()
        self._hook = ContextPruningHook(self._registry)
        self._flush: MemoryFlushSettings | None = resolve_memory_flush_settings(config.memory_flush)

    @classmethod
    def from_config(cls, config_path: str | Path | None = None) -> "TranscriptBudget":
        """Create a TranscriptBudget from a CONFIG.yaml file."""
        from . import load_config

        cfg = BudgetConfig.from_dict(load_config(Path(config_path) if config_path else None))
        return cls(config=cfg, sessions=SessionStore(cfg.session_dir))

    @property
    def registry(self) -> RuntimeRegistry:
        return self._registry

    # -- Lifecycle --

    def start_session(
        self,
        *,
        provider: str,
        model_id: str,
        model_context_window: int | None = None,
        session_id: str | None = None,
    ) -> Session:
        """Open a session log, check the context window and register runtimes.

        Passing an existing ``session_id`` resumes it, including persisted
        snapshot expiry state and the last cache touch time. Raises
        ContextWindowTooSmall when the window is below the hard minimum.
        """
        info = check_context_window(
            model_context_window=model_context_window,
            config_context_tokens=self._config.context_tokens,
            default_tokens=self._config.default_context_tokens,
        )

        entry = self._sessions.create_session(session_id)
        session_log = SessionLog(self._sessions, entry)
        setup_session_runtime(
            self._registry,
            session_log,
            config=self._config,
            provider=provider,
            model_id=model_id,
            model_context_window=model_context_window,
        )
        return Session(
            log=session_log,
            provider=provider,
            model_id=model_id,
            context_window_tokens=apply_context_window_cap(model_context_window, info),
            messages=self._sessions.read_messages(entry),
        )

    def process_turn(self, session: Session) -> PreparedTurn:
        """Run the turn hook over the session transcript and check the flush trigger."""
        replaced = self._hook(
            session.messages,
            TurnContext(session=session.log, model_context_window=session.context_window_tokens),
        )
        if replaced is not None:
            session.messages = replaced

        prepared = PreparedTurn(messages=session.messages, modified=replaced is not None)
        if self._flush is not None and self.should_flush(session):
            prepared.flush_prompt = resolve_memory_flush_prompt_for_run(
                self._flush.prompt,
                user_timezone=self._config.user_timezone,
            )
            prepared.flush_system_prompt = self._flush.system_prompt
            prepared.flush_always_execute = self._flush.always_execute
        return prepared

    def append_turn(self, session: Session, turn: Turn) -> None:
        """Add a turn to the transcript and the session log."""
        session.messages.append(turn)
        session.log.append_message(turn)

    def end_session(self, session: Session) -> None:
        self._registry.discard(session.session_id)

    # -- Ledger --

    def record_usage(self, session: Session, total_tokens: int, *, fresh: bool = True) -> None:
        """Store the latest measured token total for the flush trigger."""
        session.ledger = session.ledger.model_copy(
            update={"total_tokens": total_tokens, "total_tokens_fresh": fresh}
        )

    def record_compaction(self, session: Session) -> None:
        """Start a new compaction generation. The cached total is now stale."""
        session.ledger = session.ledger.model_copy(update={
            "compaction_count": session.ledger.compaction_count + 1,
            "total_tokens_fresh": False,
        })

    def should_flush(self, session: Session) -> bool:
        if self._flush is None:
            return False
        window = resolve_memory_flush_context_window_tokens(
            model_context_window=session.context_window_tokens,
            agent_cfg_context_tokens=self._config.context_tokens,
            default_tokens=self._config.default_context_tokens,
        )
        return should_run_memory_flush(
            session.ledger,
            context_window_tokens=window,
            reserve_tokens_floor=self._flush.reserve_tokens_floor,
            soft_threshold_tokens=self._flush.soft_threshold_tokens,
        )

    def mark_flushed(self, session: Session) -> None:
        """Record that the flush for the current compaction generation ran."""
        session.ledger = session.ledger.model_copy(
            update={"memory_flush_compaction_count": session.ledger.compaction_count}
        )

    # -- Cache --

    def touch_cache(self, session: Session, timestamp: int | None = None) -> None:
        """Record a prompt-cache write (call after each model response)."""
        ts = timestamp if timestamp is not None else now_ms()
        pruning = self._registry.get_pruning(session.session_id)
        if pruning is None:
            return
        pruning.last_cache_touch_at = ts
        append_cache_ttl_timestamp(session.log, ts)
