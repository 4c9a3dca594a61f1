"""JSONL session log persistence."""

from __future__ import annotations

import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Protocol, runtime_checkable
from uuid import uuid4

from ..types import SessionEntry, Turn

log = logging.getLogger(__name__)


@runtime_checkable
class SessionHandle(Protocol):
    """What the engine needs from a session: an id and an append/read log."""

    @property
    def session_id(self) -> str: ...

    def get_entries(self) -> list[dict[str, Any]]: ...

    def append_custom_entry(self, custom_type: str, data: Any) -> None: ...


class SessionStore:
    """Manages JSONL session logs on disk."""

    def __init__(self, session_dir: str | Path) -> None:
        self._dir = Path(session_dir).expanduser()
        self._dir.mkdir(parents=True, exist_ok=True)

    def create_session(self, session_id: str | None = None) -> SessionEntry:
        """Create (or reopen) a session and return its entry."""
        sid = session_id or uuid4().hex[:12]
        path = self._dir / f"{sid}.jsonl"
        return SessionEntry(session_id=sid, transcript_path=str(path))

    def _append(self, session: SessionEntry, record: dict[str, Any]) -> None:
        if not session.transcript_path:
            raise ValueError("Session has no transcript path")
        line = json.dumps(record)
        with open(session.transcript_path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
        session.entry_count += 1
        session.updated_at = datetime.utcnow()

    def append_message(self, session: SessionEntry, turn: Turn) -> None:
        """Append a transcript turn to the session log."""
        self._append(session, {"type": "message", "message": turn.model_dump(mode="json")})

    def append_custom_entry(self, session: SessionEntry, custom_type: str, data: Any) -> None:
        """Append an extension-owned state record to the session log."""
        self._append(session, {
            "type": "custom",
            "customType": custom_type,
            "data": data,
            "timestamp": datetime.utcnow().isoformat(),
        })

    def _log_path(self, session: SessionEntry) -> Path | None:
        if not session.transcript_path:
            return None
        path = Path(session.transcript_path)
        return path if path.is_file() else None

    def read_entries(self, session: SessionEntry) -> list[dict[str, Any]]:
        """Read every well-formed entry from the session log, oldest first."""
        path = self._log_path(session)
        if path is None:
            return []
        return [parsed for _, parsed in _scan_lines(path) if isinstance(parsed, dict)]

    def read_messages(self, session: SessionEntry) -> list[Turn]:
        """Read all transcript turns from the session log."""
        return [
            Turn.model_validate(entry["message"])
            for entry in self.read_entries(session)
            if entry.get("type") == "message" and isinstance(entry.get("message"), dict)
        ]

    def repair_transcript(self, session: SessionEntry) -> int:
        """Rewrite the session log without its unparseable lines.

        The previous file is kept as ``<id>.jsonl.bak``. Returns the number of
        lines dropped.
        """
        path = self._log_path(session)
        if path is None:
            return 0
        lines = list(_scan_lines(path))
        kept = [raw for raw, parsed in lines if parsed is not None]
        if len(kept) == len(lines):
            return 0
        backup = path.with_name(path.name + ".bak")
        shutil.copy2(path, backup)
        path.write_text("".join(f"{raw}\n" for raw in kept), encoding="utf-8")
        dropped = len(lines) - len(kept)
        log.warning("Session log %s: dropped %d corrupt lines (backup %s)", path.name, dropped, backup)
        return dropped


def _scan_lines(path: Path) -> Iterator[tuple[str, Any]]:
    """Yield ``(raw, parsed)`` for each non-blank line; ``parsed`` is None if invalid."""
    with open(path, encoding="utf-8", errors="replace") as f:
        for raw in f:
            raw = raw.rstrip("\n")
            if not raw.strip():
                continue
            try:
                yield raw, json.loads(raw)
            except json.JSONDecodeError:
                yield raw, None


class SessionLog:
    """A :class:`SessionHandle` backed by one session in a :class:`SessionStore`."""

    def __init__(self, store: SessionStore, entry: SessionEntry) -> None:
        self._store = store
        self.entry = entry

    @property
    def session_id(self) -> str:
        return self.entry.session_id

    def get_entries(self) -> list[dict[str, Any]]:
        return self._store.read_entries(self.entry)

    def append_custom_entry(self, custom_type: str, data: Any) -> None:
        self._store.append_custom_entry(self.entry, custom_type, data)

    def append_message(self, turn: Turn) -> None:
        self._store.append_message(self.entry, turn)
