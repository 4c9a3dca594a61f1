"""transcript-budget — keep a growing agent transcript inside the model's context window."""

from pathlib import Path

import yaml

_CONFIG_PATH = Path(__file__).parent / "CONFIG.yaml"


def load_config(path: Path | None = None) -> dict:
    """Load and return the CONFIG.yaml as a dict."""
    p = path or _CONFIG_PATH
    with open(p) as f:
        return yaml.safe_load(f) or {}


# Public API
from .config import BudgetConfig, ContextPruningSettings, SnapshotExpirySettings  # noqa: E402
from .context.extension import ContextPruningHook, TurnContext  # noqa: E402
from .context.memory_flush import should_run_memory_flush  # noqa: E402
from .context.runtime import RuntimeRegistry  # noqa: E402
from .context.snapshot_expiry import SNAPSHOT_EXPIRED_PLACEHOLDER, expire_snapshots  # noqa: E402
from .context.tool_pruning import prune_tool_results  # noqa: E402
from .context.window_guard import ContextWindowTooSmall  # noqa: E402
from .facade import PreparedTurn, Session, TranscriptBudget  # noqa: E402
from .types import FlushLedgerEntry, Turn, TurnRole  # noqa: E402

__all__ = [
    "TranscriptBudget",
    "Session",
    "PreparedTurn",
    "load_config",
    "BudgetConfig",
    "ContextPruningSettings",
    "SnapshotExpirySettings",
    "ContextPruningHook",
    "TurnContext",
    "RuntimeRegistry",
    "ContextWindowTooSmall",
    "prune_tool_results",
    "expire_snapshots",
    "SNAPSHOT_EXPIRED_PLACEHOLDER",
    "should_run_memory_flush",
    "FlushLedgerEntry",
    "Turn",
    "TurnRole",
]
