"""Table-scoped memory managers over the storage adapter."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from tandem.core.ids import new_id
from tandem.models.memory import EmbeddingSearchResult, Memory, MemoryMetadata, MemoryType
from tandem.models.model_types import ModelType

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)

DEFAULT_TABLE_TYPES: dict[str, MemoryType] = {
    "messages": MemoryType.message,
    "descriptions": MemoryType.description,
    "documents": MemoryType.document,
    "fragments": MemoryType.fragment,
}


class TableMemoryManager:
    """CRUD and similarity search for one memory table."""

    def __init__(
        self,
        runtime: AgentRuntime,
        table_name: str,
        *,
        cache_threshold: int | None = None,
        cache_match_count: int | None = None,
        match_threshold: float | None = None,
    ) -> None:
        self.runtime = runtime
        self.table_name = table_name
        memory_settings = runtime.settings.memory
        self._cache_threshold = (
            memory_settings.cache_levenshtein_threshold if cache_threshold is None else cache_threshold
        )
        self._cache_match_count = (
            memory_settings.cache_match_count if cache_match_count is None else cache_match_count
        )
        self._match_threshold = (
            memory_settings.match_threshold if match_threshold is None else match_threshold
        )

    @property
    def default_type(self) -> str:
        return DEFAULT_TABLE_TYPES.get(self.table_name, MemoryType.custom).value

    async def add_embedding_to_memory(self, memory: Memory) -> Memory:
        """Return *memory* with an embedding, reusing an identical cached one if any."""
        if memory.embedding:
            return memory
        text = memory.content.text
        if not text:
            raise ValueError("cannot embed a memory without text content")

        cached = await self.get_cached_embeddings(text)
        exact = next((c for c in cached if c.levenshtein_score == 0), None)
        if exact is not None:
            logger.debug("Reusing cached embedding for memory in %s", self.table_name)
            embedding = exact.embedding
        else:
            embedding = await self.runtime.use_model(ModelType.TEXT_EMBEDDING, {"text": text})
        return memory.model_copy(update={"embedding": [float(x) for x in embedding]})

    async def get_memories(
        self,
        room_id: str,
        *,
        count: int = 10,
        unique: bool = True,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Memory]:
        return await self.runtime.adapter.get_memories(
            room_id=room_id,
            table_name=self.table_name,
            count=count,
            unique=unique,
            start=start,
            end=end,
        )

    async def search_memories(
        self,
        embedding: list[float],
        *,
        room_id: str | None = None,
        match_threshold: float | None = None,
        count: int = 10,
        unique: bool = True,
    ) -> list[Memory]:
        """Memories similar to *embedding*, most similar first, at most *count*.

        *match_threshold* defaults to the ``memory.match_threshold`` setting.
        """
        found = await self.runtime.adapter.search_memories(
            table_name=self.table_name,
            embedding=embedding,
            match_threshold=self._match_threshold if match_threshold is None else match_threshold,
            count=count,
            room_id=room_id,
            unique=unique,
        )
        found.sort(key=lambda m: m.similarity or 0.0, reverse=True)
        return found[:count]

    async def get_cached_embeddings(self, content: str) -> list[EmbeddingSearchResult]:
        return await self.runtime.adapter.get_cached_embeddings(
            table_name=self.table_name,
            query_input=content,
            threshold=self._cache_threshold,
            match_count=self._cache_match_count,
        )

    async def get_memory_by_id(self, memory_id: str) -> Memory | None:
        return await self.runtime.adapter.get_memory_by_id(memory_id)

    async def get_memories_by_room_ids(
        self, room_ids: list[str], *, limit: int | None = None
    ) -> list[Memory]:
        return await self.runtime.adapter.get_memories_by_room_ids(
            table_name=self.table_name, room_ids=room_ids, limit=limit
        )

    async def create_memory(self, memory: Memory, *, unique: bool = False) -> str:
        """Store *memory* and return its id; storing an existing id is a no-op."""
        if memory.id is not None:
            existing = await self.runtime.adapter.get_memory_by_id(memory.id)
            if existing is not None:
                logger.debug("Memory %s already stored in %s", memory.id, self.table_name)
                return memory.id

        update: dict[str, object] = {}
        if memory.id is None:
            update["id"] = new_id()
        if memory.agent_id is None:
            update["agent_id"] = self.runtime.agent_id
        if memory.metadata is None:
            update["metadata"] = MemoryMetadata(type=self.default_type)
        prepared = memory.model_copy(update=update) if update else memory

        if (
            unique
            and prepared.embedding is None
            and prepared.content.text
            and self.runtime.has_model(ModelType.TEXT_EMBEDDING)
        ):
            prepared = await self.add_embedding_to_memory(prepared)

        return await self.runtime.adapter.create_memory(prepared, self.table_name, unique)

    async def remove_memory(self, memory_id: str) -> None:
        await self.runtime.adapter.remove_memory(memory_id, self.table_name)

    async def remove_all_memories(self, room_id: str) -> None:
        await self.runtime.adapter.remove_all_memories(room_id, self.table_name)

    async def count_memories(self, room_id: str, *, unique: bool = True) -> int:
        return await self.runtime.adapter.count_memories(
            room_id, unique=unique, table_name=self.table_name
        )


__all__ = ["DEFAULT_TABLE_TYPES", "TableMemoryManager"]
