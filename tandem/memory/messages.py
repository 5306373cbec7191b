from __future__ import annotations

from typing import TYPE_CHECKING

from tandem.memory.manager import TableMemoryManager
from tandem.models.common import utc_now
from tandem.models.content import Content
from tandem.models.memory import Memory, MemoryMetadata, MemoryScope, MemoryType

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime


class MessageManager(TableMemoryManager):
    """Memory manager for the ``messages`` table with conversation helpers."""

    def __init__(self, runtime: AgentRuntime) -> None:
        super().__init__(runtime, "messages")

    async def create_message(self, *, entity_id: str, room_id: str, content: Content) -> str:
        if content.text is None:
            raise ValueError("message content requires text")
        memory = Memory(
            entity_id=entity_id,
            agent_id=self.runtime.agent_id,
            room_id=room_id,
            content=content,
            metadata=MemoryMetadata(
                type=MemoryType.message,
                timestamp=utc_now(),
                scope=MemoryScope.private,
            ),
        )
        return await self.create_memory(memory)

    async def get_recent_messages(self, room_id: str, *, count: int | None = None) -> list[Memory]:
        """Latest message memories in *room_id*, oldest first."""
        limit = self.runtime.settings.conversation_length if count is None else count
        memories = await self.get_memories(room_id, count=limit, unique=False)
        return sorted((m for m in memories if m.is_message()), key=lambda m: m.created_at)


__all__ = ["MessageManager"]
