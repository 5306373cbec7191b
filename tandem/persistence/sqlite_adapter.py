"""SQLite implementation of the storage collaborator contract.

Connection-per-operation, like the other stores: the runtime is a single
process and turns are short, so there is no connection lifecycle to manage.
Embeddings are stored as JSON arrays and compared in Python.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from tandem.core.ids import new_id
from tandem.memory.similarity import cosine_similarities, edit_distance
from tandem.models.common import utc_now
from tandem.models.content import Content
from tandem.models.memory import EmbeddingSearchResult, Memory, MemoryMetadata
from tandem.models.tasks import Task, TaskMetadata
from tandem.models.world import ChannelType, Room, World, WorldMetadata
from tandem.persistence.migrations import run_migrations

logger = logging.getLogger(__name__)

# Similarity above which a new memory counts as a duplicate of an existing one.
DUPLICATE_SIMILARITY = 0.95


def _parse_dt(val: str | None) -> datetime | None:
    if val is None:
        return None
    dt = datetime.fromisoformat(val)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def _row_to_memory(row: aiosqlite.Row, similarity: float | None = None) -> Memory:
    metadata = json.loads(row["metadata"]) if row["metadata"] else None
    return Memory(
        id=row["id"],
        entity_id=row["entity_id"],
        agent_id=row["agent_id"],
        room_id=row["room_id"],
        created_at=_parse_dt(row["created_at"]),
        content=Content.model_validate(json.loads(row["content"])),
        embedding=json.loads(row["embedding"]) if row["embedding"] else None,
        unique=bool(row["is_unique"]),
        similarity=similarity,
        metadata=MemoryMetadata.model_validate(metadata) if metadata is not None else None,
    )


def _row_to_task(row: aiosqlite.Row) -> Task:
    return Task(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        room_id=row["room_id"],
        world_id=row["world_id"],
        tags=json.loads(row["tags"]),
        metadata=TaskMetadata.model_validate(json.loads(row["metadata"])),
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
    )


def _row_to_room(row: aiosqlite.Row) -> Room:
    return Room(
        id=row["id"],
        name=row["name"],
        agent_id=row["agent_id"],
        source=row["source"],
        type=ChannelType(row["type"]),
        channel_id=row["channel_id"],
        server_id=row["server_id"],
        world_id=row["world_id"],
        metadata=json.loads(row["metadata"]),
    )


def _row_to_world(row: aiosqlite.Row) -> World:
    return World(
        id=row["id"],
        name=row["name"],
        agent_id=row["agent_id"],
        server_id=row["server_id"],
        metadata=WorldMetadata.model_validate(json.loads(row["metadata"])),
    )


class SQLiteDatabaseAdapter:
    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    async def init(self) -> None:
        applied = await run_migrations(self.db_path)
        if applied:
            logger.info("Applied migrations: %s", ", ".join(applied))

    async def close(self) -> None:
        return None

    # ------------------------------------------------------------------
    # Memories
    # ------------------------------------------------------------------

    async def create_memory(self, memory: Memory, table_name: str, unique: bool = False) -> str:
        memory_id = memory.id or new_id()
        is_unique = False
        if unique:
            is_unique = not await self._has_duplicate(memory, table_name)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT OR REPLACE INTO memories (
                    id, table_name, entity_id, agent_id, room_id, created_at,
                    content, embedding, is_unique, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    memory_id,
                    table_name,
                    memory.entity_id,
                    memory.agent_id,
                    memory.room_id,
                    memory.created_at.isoformat(),
                    memory.content.model_dump_json(),
                    json.dumps(memory.embedding) if memory.embedding is not None else None,
                    1 if is_unique else 0,
                    memory.metadata.model_dump_json() if memory.metadata is not None else None,
                ),
            )
            await db.commit()
        return memory_id

    async def _has_duplicate(self, memory: Memory, table_name: str) -> bool:
        if memory.embedding:
            similar = await self.search_memories(
                table_name=table_name,
                embedding=memory.embedding,
                match_threshold=DUPLICATE_SIMILARITY,
                count=1,
                room_id=memory.room_id,
            )
            return bool(similar)
        if not memory.content.text:
            return False
        existing = await self.get_memories(room_id=memory.room_id, table_name=table_name)
        return any(m.content.text == memory.content.text for m in existing)

    async def get_memory_by_id(self, memory_id: str) -> Memory | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM memories WHERE id = ?", (memory_id,))
            row = await cursor.fetchone()
            return _row_to_memory(row) if row is not None else None

    async def get_memories_by_ids(
        self, memory_ids: list[str], table_name: str | None = None
    ) -> list[Memory]:
        if not memory_ids:
            return []
        placeholders = ", ".join("?" for _ in memory_ids)
        query = f"SELECT * FROM memories WHERE id IN ({placeholders})"  # noqa: S608
        params: list[object] = list(memory_ids)
        if table_name is not None:
            query += " AND table_name = ?"
            params.append(table_name)
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query + " ORDER BY created_at DESC", params)
            rows = await cursor.fetchall()
            return [_row_to_memory(r) for r in rows]

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
        query = "SELECT * FROM memories WHERE table_name = ? AND room_id = ?"
        params: list[object] = [table_name, room_id]
        if unique:
            query += " AND is_unique = 1"
        if start is not None:
            query += " AND created_at >= ?"
            params.append(start.isoformat())
        if end is not None:
            query += " AND created_at <= ?"
            params.append(end.isoformat())
        query += " ORDER BY created_at DESC"
        if count is not None:
            query += " LIMIT ?"
            params.append(count)
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [_row_to_memory(r) for r in rows]

    async def get_memories_by_room_ids(
        self, *, table_name: str, room_ids: list[str], limit: int | None = None
    ) -> list[Memory]:
        if not room_ids:
            return []
        placeholders = ", ".join("?" for _ in room_ids)
        query = (
            f"SELECT * FROM memories WHERE table_name = ? AND room_id IN ({placeholders})"  # noqa: S608
            " ORDER BY created_at DESC"
        )
        params: list[object] = [table_name, *room_ids]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [_row_to_memory(r) for r in rows]

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
        query = "SELECT * FROM memories WHERE table_name = ? AND embedding IS NOT NULL"
        params: list[object] = [table_name]
        if room_id is not None:
            query += " AND room_id = ?"
            params.append(room_id)
        if unique:
            query += " AND is_unique = 1"
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = list(await cursor.fetchall())

        vectors = [json.loads(r["embedding"]) for r in rows]
        scored = [
            (row, score)
            for row, score in zip(rows, cosine_similarities(embedding, vectors), strict=True)
            if score >= match_threshold
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return [_row_to_memory(row, similarity=score) for row, score in scored[:count]]

    async def get_cached_embeddings(
        self,
        *,
        table_name: str,
        query_input: str,
        threshold: int,
        match_count: int,
    ) -> list[EmbeddingSearchResult]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT content, embedding FROM memories "
                "WHERE table_name = ? AND embedding IS NOT NULL",
                (table_name,),
            )
            rows = await cursor.fetchall()

        results: list[EmbeddingSearchResult] = []
        for row in rows:
            text = json.loads(row["content"]).get("text")
            if not text:
                continue
            score = edit_distance(text, query_input, cutoff=threshold)
            if score <= threshold:
                results.append(
                    EmbeddingSearchResult(
                        embedding=json.loads(row["embedding"]), levenshtein_score=score
                    )
                )
        results.sort(key=lambda r: r.levenshtein_score)
        return results[:match_count]

    async def remove_memory(self, memory_id: str, table_name: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM memories WHERE id = ? AND table_name = ?", (memory_id, table_name)
            )
            await db.commit()

    async def remove_all_memories(self, room_id: str, table_name: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "DELETE FROM memories WHERE room_id = ? AND table_name = ?", (room_id, table_name)
            )
            await db.commit()

    async def count_memories(
        self, room_id: str, *, unique: bool = True, table_name: str | None = None
    ) -> int:
        query = "SELECT COUNT(*) FROM memories WHERE room_id = ?"
        params: list[object] = [room_id]
        if unique:
            query += " AND is_unique = 1"
        if table_name is not None:
            query += " AND table_name = ?"
            params.append(table_name)
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(query, params)
            row = await cursor.fetchone()
            return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Worlds / rooms / participants
    # ------------------------------------------------------------------

    async def create_world(self, world: World) -> str:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO worlds (id, name, agent_id, server_id, metadata) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    world.id,
                    world.name,
                    world.agent_id,
                    world.server_id,
                    world.metadata.model_dump_json(),
                ),
            )
            await db.commit()
        return world.id

    async def get_world(self, world_id: str) -> World | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM worlds WHERE id = ?", (world_id,))
            row = await cursor.fetchone()
            return _row_to_world(row) if row is not None else None

    async def update_world(self, world: World) -> None:
        await self.create_world(world)

    async def create_room(self, room: Room) -> str:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT OR REPLACE INTO rooms (
                    id, name, agent_id, source, type, channel_id, server_id, world_id, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    room.id,
                    room.name,
                    room.agent_id,
                    room.source,
                    room.type.value,
                    room.channel_id,
                    room.server_id,
                    room.world_id,
                    json.dumps(room.metadata),
                ),
            )
            await db.commit()
        return room.id

    async def get_room(self, room_id: str) -> Room | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM rooms WHERE id = ?", (room_id,))
            row = await cursor.fetchone()
            return _row_to_room(row) if row is not None else None

    async def get_rooms(self, world_id: str) -> list[Room]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM rooms WHERE world_id = ?", (world_id,))
            rows = await cursor.fetchall()
            return [_row_to_room(r) for r in rows]

    async def delete_room(self, room_id: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM memories WHERE room_id = ?", (room_id,))
            await db.execute("DELETE FROM participants WHERE room_id = ?", (room_id,))
            await db.execute("DELETE FROM rooms WHERE id = ?", (room_id,))
            await db.commit()

    async def add_participant(self, entity_id: str, room_id: str) -> bool:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "INSERT OR IGNORE INTO participants (entity_id, room_id) VALUES (?, ?)",
                (entity_id, room_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def get_participants_for_room(self, room_id: str) -> list[str]:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "SELECT entity_id FROM participants WHERE room_id = ? ORDER BY entity_id",
                (room_id,),
            )
            rows = await cursor.fetchall()
            return [r[0] for r in rows]

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def create_task(self, task: Task) -> str:
        task_id = task.id or new_id()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT INTO tasks (
                    id, name, description, room_id, world_id, tags, metadata,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    task_id,
                    task.name,
                    task.description,
                    task.room_id,
                    task.world_id,
                    json.dumps(task.tags),
                    task.metadata.model_dump_json(),
                    task.created_at.isoformat(),
                    task.updated_at.isoformat(),
                ),
            )
            await db.commit()
        return task_id

    async def get_task(self, task_id: str) -> Task | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
            row = await cursor.fetchone()
            return _row_to_task(row) if row is not None else None

    async def get_tasks(
        self, *, room_id: str | None = None, tags: list[str] | None = None
    ) -> list[Task]:
        query = "SELECT * FROM tasks"
        params: list[object] = []
        if room_id is not None:
            query += " WHERE room_id = ?"
            params.append(room_id)
        query += " ORDER BY created_at ASC"
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
        tasks = [_row_to_task(r) for r in rows]
        return [t for t in tasks if t.has_tags(tags)]

    async def get_tasks_by_name(self, name: str) -> list[Task]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM tasks WHERE name = ? ORDER BY created_at ASC", (name,)
            )
            rows = await cursor.fetchall()
            return [_row_to_task(r) for r in rows]

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> None:
        task = await self.get_task(task_id)
        if task is None:
            return
        data = task.model_dump(mode="python")
        data.update(changes)
        if "updated_at" not in changes:
            data["updated_at"] = utc_now()
        updated = Task.model_validate(data)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """UPDATE tasks
                   SET name = ?, description = ?, room_id = ?, world_id = ?,
                       tags = ?, metadata = ?, updated_at = ?
                   WHERE id = ?""",
                (
                    updated.name,
                    updated.description,
                    updated.room_id,
                    updated.world_id,
                    json.dumps(updated.tags),
                    updated.metadata.model_dump_json(),
                    updated.updated_at.isoformat(),
                    task_id,
                ),
            )
            await db.commit()

    async def delete_task(self, task_id: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            await db.commit()

    # ------------------------------------------------------------------
    # Cache / log
    # ------------------------------------------------------------------

    async def get_cache(self, key: str) -> Any | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT value, expires_at FROM cache WHERE key = ?", (key,))
            row = await cursor.fetchone()
            if row is None:
                return None
            expires_at = _parse_dt(row["expires_at"])
            if expires_at is not None and expires_at <= utc_now():
                await db.execute("DELETE FROM cache WHERE key = ?", (key,))
                await db.commit()
                return None
            return json.loads(row["value"])

    async def set_cache(self, key: str, value: Any, *, expires_at: datetime | None = None) -> bool:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO cache (key, value, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), expires_at.isoformat() if expires_at else None),
            )
            await db.commit()
        return True

    async def delete_cache(self, key: str) -> bool:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute("DELETE FROM cache WHERE key = ?", (key,))
            await db.commit()
            return cursor.rowcount > 0

    async def log(self, *, body: dict[str, Any], entity_id: str, room_id: str, type: str) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT INTO logs (id, entity_id, room_id, type, body, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (new_id(), entity_id, room_id, type, json.dumps(body), utc_now().isoformat()),
            )
            await db.commit()


__all__ = ["SQLiteDatabaseAdapter"]
