"""Core data types for transcript-budget."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# -- Transcript content blocks --


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageBlock(BaseModel):
    """Opaque media block. Its rendered cost is not cheaply knowable."""

    type: Literal["image"] = "image"
    data: str = ""
    mime_type: str = "image/png"


class ThinkingBlock(BaseModel):
    type: Literal["thinking"] = "thinking"
    thinking: str


class ToolCallBlock(BaseModel):
    """A tool invocation emitted by the assistant."""

    type: Literal["toolCall"] = "toolCall"
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


ContentBlock = Annotated[
    Union[TextBlock, ImageBlock, ThinkingBlock, ToolCallBlock],
    Field(discriminator="type"),
]


# -- Transcript --


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_RESULT = "toolResult"
    SYSTEM = "system"


class Turn(BaseModel):
    """A single transcript entry.

    Turns are immutable; pruning replaces a turn with a size-reduced copy.
    """

    model_config = ConfigDict(frozen=True)

    role: TurnRole
    content: Union[str, list[ContentBlock]]
    tool_call_id: str | None = None
    tool_name: str | None = None
    is_error: bool = False
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @property
    def blocks(self) -> list[Any]:
        """Content as a block list (plain string content becomes one text block)."""
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)]
        return list(self.content)

    def with_text(self, text: str) -> Turn:
        """Return a copy whose content is a single text block."""
        return self.model_copy(update={"content": [TextBlock(text=text)]})


# -- Flush ledger --


class FlushLedgerEntry(BaseModel):
    """Last-known token usage and the compaction generation already flushed."""

    total_tokens: int | None = None
    total_tokens_fresh: bool = True
    compaction_count: int = 0
    memory_flush_compaction_count: int | None = None


# -- Session persistence --


class SessionEntry(BaseModel):
    """Metadata for a session stored on disk."""

    session_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    entry_count: int = 0
    transcript_path: str | None = None


class SnapshotStateRecord(BaseModel):
    """Persisted set of expired snapshot ids."""

    timestamp: int
    expired_ids: list[str] = Field(default_factory=list)
