from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from tandem.models.memory import EmbeddingSearchResult, Memory


@runtime_checkable
class MemoryManager(Protocol):
    table_name: str

    async def add_embedding_to_memory(self, memory: Memory) -> Memory: ...

    async def get_memories(
        self,
        room_id: str,
        *,
        count: int = 10,
        unique: bool = True,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Memory]: ...

    async def search_memories(
        self,
        embedding: list[float],
        *,
        room_id: str | None = None,
        match_threshold: float | None = None,
        count: int = 10,
        unique: bool = True,
    ) -> list[Memory]: ...

    async def get_cached_embeddings(self, content: str) -> list[EmbeddingSearchResult]: ...

    async def get_memory_by_id(self, memory_id: str) -> Memory | None: ...

    async def get_memories_by_room_ids(
        self, room_ids: list[str], *, limit: int | None = None
    ) -> list[Memory]: ...

    async def create_memory(self, memory: Memory, *, unique: bool = False) -> str: ...

    async def remove_memory(self, memory_id: str) -> None: ...

    async def remove_all_memories(self, room_id: str) -> None: ...

    async def count_memories(self, room_id: str, *, unique: bool = True) -> int: ...


__all__ = ["MemoryManager"]
