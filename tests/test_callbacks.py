from __future__ import annotations

import pytest
from tandem.core.runtime import AgentRuntime
from tandem.models.content import Content
from tandem.models.events import EventType, MessagePayload
from tandem.models.memory import Memory

from tests.fakes import ROOM_ID, InMemoryDatabaseAdapter

pytestmark = pytest.mark.asyncio


async def test_reply_is_stored_before_delivery(
    runtime: AgentRuntime, adapter: InMemoryDatabaseAdapter
) -> None:
    delivered: list[tuple[Content, list[Memory]]] = []

    async def sink(content: Content, memories: list[Memory]) -> None:
        assert memories[0].id in adapter.memories
        delivered.append((content, memories))

    channel = runtime.reply_channel(ROOM_ID, in_reply_to="msg-1", source="discord", sink=sink)

    memories = await channel(Content(text="hi there"), ["report.pdf"])

    stored = adapter.memories[memories[0].id]
    assert stored.entity_id == runtime.agent_id
    assert stored.content.in_reply_to == "msg-1"
    assert stored.content.source == "discord"
    assert stored.content.extensions["files"] == ["report.pdf"]
    assert delivered[0][0].text == "hi there"


async def test_reply_emits_message_sent(runtime: AgentRuntime) -> None:
    sent: list[MessagePayload] = []
    runtime.register_event(EventType.MESSAGE_SENT, sent.append)

    memories = await runtime.reply_channel(ROOM_ID)(Content(text="ping"))

    assert sent[0].message.id == memories[0].id
    assert sent[0].source == "runtime"


async def test_explicit_reply_target_wins(
    runtime: AgentRuntime, adapter: InMemoryDatabaseAdapter
) -> None:
    channel = runtime.reply_channel(ROOM_ID, in_reply_to="default")

    memories = await channel(Content(text="x", in_reply_to="explicit"))

    assert adapter.memories[memories[0].id].content.in_reply_to == "explicit"
