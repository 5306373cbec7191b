"""Storage collaborator contract consumed by the runtime core."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from tandem.models.memory import EmbeddingSearchResult, Memory
from tandem.models.tasks import Task
from tandem.models.world import Room, World


@runtime_checkable
class DatabaseAdapter(Protocol):
    async def init(self) -> None: ...

    async def close(self) -> None: ...

    # -- memories -------------------------------------------------------

    async def create_memory(self, memory: Memory, table_name: str, unique: bool = False) -> str: ...

    async def get_memory_by_id(self, memory_id: str) -> Memory | None: ...

    async def get_memories_by_ids(
        self, memory_ids: list[str], table_name: str | None = None
    ) -> list[Memory]: ...

    async def get_memories(
        self,
        *,
        room_id: str,
        table_name: str,
        count: int | None = None,
        unique: bool = False,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Memory]: ...

    async def get_memories_by_room_ids(
        self, *, table_name: str, room_ids: list[str], limit: int | None = None
    ) -> list[Memory]: ...

    async def search_memories(
        self,
        *,
        table_name: str,
        embedding: list[float],
        match_threshold: float = 0.0,
        count: int = 10,
        room_id: str | None = None,
        unique: bool = False,
    ) -> list[Memory]: ...

    async def get_cached_embeddings(
        self,
        *,
        table_name: str,
        query_input: str,
        threshold: int,
        match_count: int,
    ) -> list[EmbeddingSearchResult]: ...

    async def remove_memory(self, memory_id: str, table_name: str) -> None: ...

    async def remove_all_memories(self, room_id: str, table_name: str) -> None: ...

    async def count_memories(
        self, room_id: str, *, unique: bool = True, table_name: str | None = None
    ) -> int: ...

    # -- worlds / rooms / participants ---------------------------------

    async def create_world(self, world: World) -> str: ...

    async def get_world(self, world_id: str) -> World | None: ...

    async def update_world(self, world: World) -> None: ...

    async def create_room(self, room: Room) -> str: ...

    async def get_room(self, room_id: str) -> Room | None: ...

    async def get_rooms(self, world_id: str) -> list[Room]: ...

    async def delete_room(self, room_id: str) -> None: ...

    async def add_participant(self, entity_id: str, room_id: str) -> bool: ...

    async def get_participants_for_room(self, room_id: str) -> list[str]: ...

    # -- tasks ----------------------------------------------------------

    async def create_task(self, task: Task) -> str: ...

    async def get_task(self, task_id: str) -> Task | None: ...

    async def get_tasks(
        self, *, room_id: str | None = None, tags: list[str] | None = None
    ) -> list[Task]: ...

    async def get_tasks_by_name(self, name: str) -> list[Task]: ...

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> None: ...

    async def delete_task(self, task_id: str) -> None: ...

    # -- cache / log ------------------------------------------------------

    async def get_cache(self, key: str) -> Any | None: ...

    async def set_cache(self, key: str, value: Any, *, expires_at: datetime | None = None) -> bool: ...

    async def delete_cache(self, key: str) -> bool: ...

    async def log(self, *, body: dict[str, Any], entity_id: str, room_id: str, type: str) -> None: ...


__all__ = ["DatabaseAdapter"]
