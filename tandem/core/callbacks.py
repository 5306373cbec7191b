"""Reply channel handed to actions, evaluators and task workers.

A channel holds identities only (room, reply target, source), never a
reference to the turn that created it, so a task worker can rebuild one
from a stored task and reply long after the original turn finished.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

from tandem.models.common import utc_now
from tandem.models.content import Content
from tandem.models.events import EventType, MessagePayload
from tandem.models.memory import Memory, MemoryMetadata, MemoryScope, MemoryType

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)

HandlerCallback = Callable[[Content, Sequence[Any] | None], Awaitable[list[Memory]]]
ReplySink = Callable[[Content, list[Memory]], Awaitable[None]]


class ReplyChannel:
    def __init__(
        self,
        runtime: AgentRuntime,
        room_id: str,
        *,
        in_reply_to: str | None = None,
        source: str | None = None,
        sink: ReplySink | None = None,
    ) -> None:
        self.runtime = runtime
        self.room_id = room_id
        self.in_reply_to = in_reply_to
        self.source = source
        self._sink = sink

    async def __call__(
        self, content: Content, files: Sequence[Any] | None = None
    ) -> list[Memory]:
        """Persist *content* as an agent message, then deliver it.

        The memory is written before the sink sees the reply, so a reply the
        transport fails to deliver is still on record.
        """
        reply = content.model_copy(deep=True)
        if reply.in_reply_to is None:
            reply.in_reply_to = self.in_reply_to
        if reply.source is None:
            reply.source = self.source
        if files:
            reply.extensions.setdefault("files", list(files))

        memory = Memory(
            entity_id=self.runtime.agent_id,
            agent_id=self.runtime.agent_id,
            room_id=self.room_id,
            content=reply,
            metadata=MemoryMetadata(
                type=MemoryType.message,
                source=reply.source,
                scope=MemoryScope.room,
                timestamp=utc_now(),
            ),
        )
        manager = self.runtime.messages
        memory_id = await manager.create_memory(memory)
        stored = memory.model_copy(update={"id": memory_id})
        memories = [stored]

        if self._sink is not None:
            await self._sink(reply, memories)

        await self.runtime.emit_event(
            EventType.MESSAGE_SENT,
            MessagePayload(
                runtime=self.runtime,
                source=reply.source or "runtime",
                message=stored,
                callback=self,
            ),
        )
        logger.debug("Reply %s stored for room %s", memory_id, self.room_id)
        return memories


__all__ = ["HandlerCallback", "ReplyChannel", "ReplySink"]
