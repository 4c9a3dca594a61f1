"""Context window resolution and the minimum-size guard for sessions."""

from __future__ import annotations

import logging
from enum import Enum
from typing import NamedTuple

log = logging.getLogger(__name__)

HARD_MIN_TOKENS = 16_000
WARN_BELOW_TOKENS = 32_000


class ContextWindowSource(str, Enum):
    MODEL = "model"
    CONFIG = "config"
    DEFAULT = "default"


class ContextWindowInfo(NamedTuple):
    tokens: int
    source: ContextWindowSource


class ContextWindowGuardResult(NamedTuple):
    tokens: int
    source: ContextWindowSource
    should_warn: bool
    should_block: bool


class ContextWindowTooSmall(RuntimeError):
    """Raised when a session's window cannot hold a useful transcript."""

    def __init__(self, info: ContextWindowInfo, hard_min: int) -> None:
        super().__init__(
            f"Context window {info.tokens} tokens ({info.source.value}) "
            f"is below hard minimum {hard_min}."
        )
        self.info = info
        self.hard_min = hard_min


def resolve_context_window(
    *,
    model_context_window: int | None = None,
    config_context_tokens: int | None = None,
    default_tokens: int = 200_000,
) -> ContextWindowInfo:
    """Pick the window the transcript has to fit in.

    The model's advertised window wins over the default; a configured
    ``context_tokens`` only ever lowers it.
    """
    info = ContextWindowInfo(default_tokens, ContextWindowSource.DEFAULT)
    if model_context_window and model_context_window > 0:
        info = ContextWindowInfo(model_context_window, ContextWindowSource.MODEL)
    if config_context_tokens and 0 < config_context_tokens < info.tokens:
        info = ContextWindowInfo(config_context_tokens, ContextWindowSource.CONFIG)
    return info


def evaluate_guard(
    info: ContextWindowInfo,
    *,
    hard_min: int = HARD_MIN_TOKENS,
    warn_below: int = WARN_BELOW_TOKENS,
) -> ContextWindowGuardResult:
    """Warn below ``warn_below`` tokens, block below ``hard_min``."""
    result = ContextWindowGuardResult(
        tokens=info.tokens,
        source=info.source,
        should_warn=info.tokens < warn_below,
        should_block=info.tokens < hard_min,
    )
    if result.should_block:
        log.error(
            "Context window too small: %d tokens from %s, minimum %d",
            info.tokens,
            info.source.value,
            hard_min,
        )
    elif result.should_warn:
        log.warning(
            "Context window is small: %d tokens from %s, recommended at least %d",
            info.tokens,
            info.source.value,
            warn_below,
        )
    return result


def check_context_window(
    *,
    model_context_window: int | None = None,
    config_context_tokens: int | None = None,
    default_tokens: int = 200_000,
) -> ContextWindowInfo:
    """Resolve the window and refuse it when it falls below the hard minimum."""
    info = resolve_context_window(
        model_context_window=model_context_window,
        config_context_tokens=config_context_tokens,
        default_tokens=default_tokens,
    )
    if evaluate_guard(info).should_block:
        raise ContextWindowTooSmall(info, HARD_MIN_TOKENS)
    return info


def apply_context_window_cap(model_context_window: int | None, info: ContextWindowInfo) -> int:
    """The model's window, lowered to the resolved window when that is smaller."""
    if model_context_window and model_context_window <= info.tokens:
        return model_context_window
    return info.tokens
