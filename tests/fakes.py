from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from tandem.core.ids import new_id, string_to_uuid
from tandem.memory.similarity import cosine_similarities, edit_distance
from tandem.models.common import utc_now
from tandem.models.content import Content
from tandem.models.memory import EmbeddingSearchResult, Memory, MemoryMetadata, MemoryType
from tandem.models.model_types import ServiceType
from tandem.models.state import ProviderResult, State
from tandem.models.tasks import Task
from tandem.models.world import ChannelType, Role, Room, World, WorldMetadata

ROOM_ID = string_to_uuid("room:general")
OTHER_ROOM_ID = string_to_uuid("room:random")
WORLD_ID = string_to_uuid("world:acme")
OWNER_ID = string_to_uuid("user:owner")
ADMIN_ID = string_to_uuid("user:admin")
USER_ID = string_to_uuid("user:guest")


def make_message(
    text: str | None = "hello",
    *,
    room_id: str = ROOM_ID,
    entity_id: str = USER_ID,
    actions: Sequence[str] = (),
    source: str = "test",
) -> Memory:
    return Memory(
        entity_id=entity_id,
        room_id=room_id,
        content=Content(text=text, actions=list(actions), source=source),
        metadata=MemoryMetadata(type=MemoryType.message, source=source),
    )


def make_response(agent_id: str, *actions: str, room_id: str = ROOM_ID) -> Memory:
    return Memory(
        entity_id=agent_id,
        agent_id=agent_id,
        room_id=room_id,
        content=Content(text="on it", actions=list(actions)),
    )


def fake_embedding(runtime: object, params: Mapping[str, Any]) -> list[float]:
    """Letter-frequency vector: equal texts embed equally, similar texts nearby."""
    text = str(params.get("text", "")).lower()
    vector = [0.0] * 26
    for char in text:
        if "a" <= char <= "z":
            vector[ord(char) - ord("a")] += 1.0
    return vector


async def seed_group_room(
    adapter: InMemoryDatabaseAdapter,
    agent_id: str,
    *,
    room_id: str = ROOM_ID,
    room_type: ChannelType = ChannelType.GROUP,
) -> Room:
    world = World(
        id=WORLD_ID,
        name="Acme",
        agent_id=agent_id,
        server_id="acme-server",
        metadata=WorldMetadata(owner_id=OWNER_ID, roles={ADMIN_ID: Role.ADMIN}),
    )
    await adapter.create_world(world)
    room = Room(
        id=room_id,
        name="general",
        agent_id=agent_id,
        source="test",
        type=room_type,
        server_id="acme-server",
        world_id=WORLD_ID,
    )
    await adapter.create_room(room)
    return room


class InMemoryDatabaseAdapter:
    """Dict-backed storage adapter with the same filtering rules as SQLite."""

    def __init__(self) -> None:
        self.memories: dict[str, Memory] = {}
        self.memory_tables: dict[str, str] = {}
        self.unique_ids: set[str] = set()
        self.worlds: dict[str, World] = {}
        self.rooms: dict[str, Room] = {}
        self.participants: dict[str, list[str]] = {}
        self.tasks: dict[str, Task] = {}
        self.cache: dict[str, tuple[Any, datetime | None]] = {}
        self.logs: list[dict[str, Any]] = []
        self.initialized = False
        self.closed = False

    async def init(self) -> None:
        self.initialized = True

    async def close(self) -> None:
        self.closed = True

    def _in_table(self, table_name: str) -> list[Memory]:
        return [m for mid, m in self.memories.items() if self.memory_tables[mid] == table_name]

    async def create_memory(self, memory: Memory, table_name: str, unique: bool = False) -> str:
        memory_id = memory.id or new_id()
        is_unique = False
        if unique:
            if memory.embedding:
                is_unique = not await self.search_memories(
                    table_name=table_name,
                    embedding=memory.embedding,
                    match_threshold=0.95,
                    count=1,
                    room_id=memory.room_id,
                )
            else:
                is_unique = not any(
                    m.content.text == memory.content.text and m.room_id == memory.room_id
                    for m in self._in_table(table_name)
                )
        self.memories[memory_id] = memory.model_copy(update={"id": memory_id}, deep=True)
        self.memory_tables[memory_id] = table_name
        if is_unique:
            self.unique_ids.add(memory_id)
        return memory_id

    async def get_memory_by_id(self, memory_id: str) -> Memory | None:
        memory = self.memories.get(memory_id)
        return memory.model_copy(deep=True) if memory is not None else None

    async def get_memories_by_ids(
        self, memory_ids: list[str], table_name: str | None = None
    ) -> list[Memory]:
        return [
            self.memories[mid].model_copy(deep=True)
            for mid in memory_ids
            if mid in self.memories
            and (table_name is None or self.memory_tables[mid] == table_name)
        ]

    async def get_memories(
        self,
        *,
        room_id: str,
        table_name: str,
        count: int | None = None,
        unique: bool = False,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Memory]:
        found = [
            m
            for m in self._in_table(table_name)
            if m.room_id == room_id
            and (not unique or m.id in self.unique_ids)
            and (start is None or m.created_at >= start)
            and (end is None or m.created_at <= end)
        ]
        found.sort(key=lambda m: m.created_at, reverse=True)
        if count is not None:
            found = found[:count]
        return [m.model_copy(deep=True) for m in found]

    async def get_memories_by_room_ids(
        self, *, table_name: str, room_ids: list[str], limit: int | None = None
    ) -> list[Memory]:
        found = [m for m in self._in_table(table_name) if m.room_id in room_ids]
        found.sort(key=lambda m: m.created_at, reverse=True)
        return [m.model_copy(deep=True) for m in found[:limit]]

    async def search_memories(
        self,
        *,
        table_name: str,
        embedding: list[float],
        match_threshold: float = 0.0,
        count: int = 10,
        room_id: str | None = None,
        unique: bool = False,
    ) -> list[Memory]:
        candidates = [
            m
            for m in self._in_table(table_name)
            if m.embedding
            and (room_id is None or m.room_id == room_id)
            and (not unique or m.id in self.unique_ids)
        ]
        scores = cosine_similarities(embedding, [m.embedding or [] for m in candidates])
        scored = [(m, s) for m, s in zip(candidates, scores, strict=True) if s >= match_threshold]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [m.model_copy(update={"similarity": s}, deep=True) for m, s in scored[:count]]

    async def get_cached_embeddings(
        self, *, table_name: str, query_input: str, threshold: int, match_count: int
    ) -> list[EmbeddingSearchResult]:
        results = []
        for memory in self._in_table(table_name):
            if not memory.embedding or not memory.content.text:
                continue
            score = edit_distance(memory.content.text, query_input, cutoff=threshold)
            if score <= threshold:
                results.append(
                    EmbeddingSearchResult(embedding=memory.embedding, levenshtein_score=score)
                )
        results.sort(key=lambda r: r.levenshtein_score)
        return results[:match_count]

    async def remove_memory(self, memory_id: str, table_name: str) -> None:
        if self.memory_tables.get(memory_id) == table_name:
            del self.memories[memory_id]
            del self.memory_tables[memory_id]
            self.unique_ids.discard(memory_id)

    async def remove_all_memories(self, room_id: str, table_name: str) -> None:
        for memory in self._in_table(table_name):
            if memory.room_id == room_id and memory.id is not None:
                await self.remove_memory(memory.id, table_name)

    async def count_memories(
        self, room_id: str, *, unique: bool = True, table_name: str | None = None
    ) -> int:
        return sum(
            1
            for mid, m in self.memories.items()
            if m.room_id == room_id
            and (not unique or mid in self.unique_ids)
            and (table_name is None or self.memory_tables[mid] == table_name)
        )

    async def create_world(self, world: World) -> str:
        self.worlds[world.id] = world.model_copy(deep=True)
        return world.id

    async def get_world(self, world_id: str) -> World | None:
        return self.worlds.get(world_id)

    async def update_world(self, world: World) -> None:
        self.worlds[world.id] = world.model_copy(deep=True)

    async def create_room(self, room: Room) -> str:
        self.rooms[room.id] = room.model_copy(deep=True)
        return room.id

    async def get_room(self, room_id: str) -> Room | None:
        return self.rooms.get(room_id)

    async def get_rooms(self, world_id: str) -> list[Room]:
        return [r for r in self.rooms.values() if r.world_id == world_id]

    async def delete_room(self, room_id: str) -> None:
        self.rooms.pop(room_id, None)
        self.participants.pop(room_id, None)

    async def add_participant(self, entity_id: str, room_id: str) -> bool:
        members = self.participants.setdefault(room_id, [])
        if entity_id in members:
            return False
        members.append(entity_id)
        return True

    async def get_participants_for_room(self, room_id: str) -> list[str]:
        return sorted(self.participants.get(room_id, []))

    async def create_task(self, task: Task) -> str:
        task_id = task.id or new_id()
        self.tasks[task_id] = task.model_copy(update={"id": task_id}, deep=True)
        return task_id

    async def get_task(self, task_id: str) -> Task | None:
        task = self.tasks.get(task_id)
        return task.model_copy(deep=True) if task is not None else None

    async def get_tasks(
        self, *, room_id: str | None = None, tags: list[str] | None = None
    ) -> list[Task]:
        return [
            t.model_copy(deep=True)
            for t in self.tasks.values()
            if (room_id is None or t.room_id == room_id) and t.has_tags(tags)
        ]

    async def get_tasks_by_name(self, name: str) -> list[Task]:
        return [t.model_copy(deep=True) for t in self.tasks.values() if t.name == name]

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> None:
        task = self.tasks.get(task_id)
        if task is None:
            return
        data = task.model_dump(mode="python")
        data.update(copy.deepcopy(changes))
        if "updated_at" not in changes:
            data["updated_at"] = utc_now()
        self.tasks[task_id] = Task.model_validate(data)

    async def delete_task(self, task_id: str) -> None:
        self.tasks.pop(task_id, None)

    async def get_cache(self, key: str) -> Any | None:
        entry = self.cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= utc_now():
            del self.cache[key]
            return None
        return value

    async def set_cache(self, key: str, value: Any, *, expires_at: datetime | None = None) -> bool:
        self.cache[key] = (value, expires_at)
        return True

    async def delete_cache(self, key: str) -> bool:
        return self.cache.pop(key, None) is not None

    async def log(self, *, body: dict[str, Any], entity_id: str, room_id: str, type: str) -> None:
        self.logs.append({"body": body, "entity_id": entity_id, "room_id": room_id, "type": type})


class FakePublisher:
    service_type: ClassVar[str] = ServiceType.PUBLISHER
    capability_description = "Records published posts in memory"

    def __init__(self) -> None:
        self.published: list[tuple[str, str | None]] = []
        self.stopped = False

    @classmethod
    async def start(cls, runtime: object) -> FakePublisher:
        return cls()

    async def publish(self, text: str, *, room_id: str | None = None) -> str:
        self.published.append((text, room_id))
        return f"https://posts.example/acme/{len(self.published)}"

    async def stop(self) -> None:
        self.stopped = True


@dataclass
class StaticProvider:
    name: str
    values: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)
    text: str = ""
    position: int = 0
    private: bool = False
    description: str = ""
    seen: list[State] = field(default_factory=list)

    async def get(self, runtime: object, message: Memory, state: State) -> ProviderResult:
        self.seen.append(state)
        return ProviderResult(values=self.values, data=self.data, text=self.text)


@dataclass
class FailingProvider:
    name: str
    position: int = 0
    private: bool = False
    description: str = ""

    async def get(self, runtime: object, message: Memory, state: State) -> ProviderResult:
        raise RuntimeError(f"{self.name} is down")


@dataclass
class RecordingAction:
    name: str
    similes: list[str] = field(default_factory=list)
    description: str = ""
    valid: bool = True
    validate_error: Exception | None = None
    error: Exception | None = None
    log: list[str] = field(default_factory=list)
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def validate(self, runtime: object, message: Memory, state: State) -> bool:
        if self.validate_error is not None:
            raise self.validate_error
        return self.valid

    async def handler(
        self,
        runtime: object,
        message: Memory,
        state: State,
        options: Mapping[str, Any],
        callback: Any,
        responses: Sequence[Memory],
    ) -> object:
        self.log.append(self.name)
        self.calls.append({"state": state, "options": options, "callback": callback})
        if self.error is not None:
            raise self.error
        return f"{self.name} done"


@dataclass
class RecordingEvaluator:
    name: str
    always_run: bool = False
    description: str = ""
    valid: bool = True
    validate_error: Exception | None = None
    error: Exception | None = None
    log: list[str] = field(default_factory=list)
    validated: int = 0

    async def validate(self, runtime: object, message: Memory, state: State) -> bool:
        self.validated += 1
        if self.validate_error is not None:
            raise self.validate_error
        return self.valid

    async def handler(
        self,
        runtime: object,
        message: Memory,
        state: State,
        options: Mapping[str, Any],
        callback: Any,
        responses: Sequence[Memory],
    ) -> object:
        self.log.append(self.name)
        if self.error is not None:
            raise self.error
        return None


@dataclass
class RecordingWorker:
    name: str
    allow: bool = True
    error: Exception | None = None
    calls: list[tuple[dict[str, Any], Task]] = field(default_factory=list)

    async def execute(self, runtime: object, options: Mapping[str, Any], task: Task) -> None:
        self.calls.append((dict(options), task))
        if self.error is not None:
            raise self.error

    async def validate(self, runtime: object, message: Memory, state: State) -> bool:
        return self.allow


__all__ = [
    "ADMIN_ID",
    "FailingProvider",
    "FakePublisher",
    "InMemoryDatabaseAdapter",
    "OTHER_ROOM_ID",
    "OWNER_ID",
    "ROOM_ID",
    "RecordingAction",
    "RecordingEvaluator",
    "RecordingWorker",
    "StaticProvider",
    "USER_ID",
    "WORLD_ID",
    "fake_embedding",
    "make_message",
    "make_response",
    "seed_group_room",
]
