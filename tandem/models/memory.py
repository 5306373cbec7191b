from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from tandem.models.content import Content
from tandem.models.common import utc_now


class MemoryType(StrEnum):
    document = "document"
    fragment = "fragment"
    message = "message"
    description = "description"
    custom = "custom"


class MemoryScope(StrEnum):
    shared = "shared"
    private = "private"
    room = "room"


class MemoryMetadata(BaseModel):
    type: str = MemoryType.custom.value
    source: str | None = None
    source_id: str | None = None
    scope: MemoryScope | None = None
    timestamp: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    document_id: str | None = None
    position: int | None = None
    extensions: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _fragments_need_document(self) -> MemoryMetadata:
        if self.type == MemoryType.fragment and self.document_id is None:
            raise ValueError("fragment metadata requires document_id")
        return self


class Memory(BaseModel):
    id: str | None = None
    entity_id: str
    agent_id: str | None = None
    room_id: str
    created_at: datetime = Field(default_factory=utc_now)
    content: Content = Field(default_factory=Content)
    embedding: list[float] | None = None
    unique: bool = False
    similarity: float | None = None
    metadata: MemoryMetadata | None = None

    @field_validator("created_at")
    @classmethod
    def _ensure_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            raise ValueError("created_at must be timezone-aware")
        return value

    @property
    def memory_type(self) -> str | None:
        return self.metadata.type if self.metadata is not None else None

    def is_message(self) -> bool:
        return self.memory_type == MemoryType.message and self.content.text is not None


class EmbeddingSearchResult(BaseModel):
    embedding: list[float]
    levenshtein_score: int


__all__ = [
    "EmbeddingSearchResult",
    "Memory",
    "MemoryMetadata",
    "MemoryScope",
    "MemoryType",
]
