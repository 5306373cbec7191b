"""Draft a post, hold it for an owner or admin to approve, then publish it.

The draft lives in the task record, not in the worker, so an approval that
arrives after a restart still publishes the right text.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, cast

from tandem.core.callbacks import HandlerCallback
from tandem.core.prompts import compose_prompt
from tandem.core.roles import get_user_role
from tandem.models.content import Content
from tandem.models.memory import Memory, MemoryMetadata
from tandem.models.model_types import ModelType, ServiceType
from tandem.models.plugin import Plugin
from tandem.models.state import State
from tandem.models.tasks import AWAITING_CHOICE_TAG, Task, TaskMetadata, TaskOption
from tandem.models.world import ChannelType, Role, Room
from tandem.protocols.services import PublisherService

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)

CONFIRM_POST = "CONFIRM_POST"
APPROVER_ROLES = frozenset({Role.OWNER, Role.ADMIN})

POST_TEMPLATE = """# Task: Create a post in the style and voice of {{agent_name}}.
{{system}}

About {{agent_name}}:
{{bio}}

{{topics}}

{{post_examples}}

Recent Context:
{{recent_messages}}

# Instructions: Write a post that captures the essence of what {{agent_name}} wants to share. The post should be:
- Under 280 characters
- In {{agent_name}}'s authentic voice and style
- Related to the ongoing conversation or context
- Not include hashtags unless specifically requested
- Natural and conversational in tone

Return only the post text, no additional commentary."""

_QUOTED_RE = re.compile(r"""^["'](.*)["']$""", re.DOTALL)


def clean_draft(raw: str) -> str:
    text = _QUOTED_RE.sub(r"\1", str(raw).strip())
    return text.replace("\\n", "\n")


async def _room_for(runtime: AgentRuntime, message: Memory, state: State | None) -> Room | None:
    room = state.data.get("room") if state is not None else None
    if isinstance(room, Room) and room.id == message.room_id:
        return room
    return await runtime.adapter.get_room(message.room_id)


class ConfirmPostAction:
    name = CONFIRM_POST
    description = "Drafts a post from the conversation and asks an admin to approve it"
    similes = ["POST", "SHARE_POST", "PUBLISH_POST", "POST_THIS", "POST_ABOUT"]

    async def validate(self, runtime: AgentRuntime, message: Memory, state: State) -> bool:
        room = await _room_for(runtime, message, state)
        if room is None or room.type != ChannelType.GROUP:
            return False
        if await runtime.tasks.has_pending(message.room_id, [CONFIRM_POST]):
            return False
        return runtime.get_service(ServiceType.PUBLISHER) is not None

    async def handler(
        self,
        runtime: AgentRuntime,
        message: Memory,
        state: State,
        options: Mapping[str, Any],
        callback: HandlerCallback | None,
        responses: Sequence[Memory],
    ) -> object:
        room = await _room_for(runtime, message, state)
        if room is None:
            raise ValueError(f"no room found for {message.room_id}")

        if room.type != ChannelType.GROUP:
            await runtime.messages.create_memory(
                Memory(
                    entity_id=message.entity_id,
                    agent_id=message.agent_id,
                    room_id=message.room_id,
                    content=Content(
                        source=message.content.source,
                        thought="I tried to draft a post but I'm not in a group conversation.",
                        actions=[f"{CONFIRM_POST}_FAILED"],
                    ),
                    metadata=MemoryMetadata(type=CONFIRM_POST),
                )
            )
            return False

        prompt = compose_prompt(state, POST_TEMPLATE)
        draft = clean_draft(await runtime.use_model(ModelType.TEXT_SMALL, {"prompt": prompt}))

        role = await get_user_role(runtime, message.entity_id, room)
        if role not in APPROVER_ROLES:
            if callback is not None:
                await callback(
                    Content(
                        text="I'm sorry, but you're not authorized to post on behalf of this org.",
                        actions=[f"{CONFIRM_POST}_FAILED"],
                        source=message.content.source,
                    ),
                    None,
                )
            return None

        for stale in await runtime.tasks.get_tasks(room_id=message.room_id, tags=[CONFIRM_POST]):
            if stale.id is not None:
                await runtime.tasks.delete_task(stale.id)

        task_id = await runtime.tasks.create_task(
            Task(
                name=CONFIRM_POST,
                description="Confirm the post to be published.",
                room_id=message.room_id,
                world_id=room.world_id,
                tags=[CONFIRM_POST, AWAITING_CHOICE_TAG],
                metadata=TaskMetadata(
                    options=[
                        TaskOption(name="post", description="Publish the post"),
                        TaskOption(name="cancel", description="Discard the draft"),
                    ],
                    extensions={
                        "draft": draft,
                        "source": message.content.source,
                        "in_reply_to": message.id,
                    },
                ),
            )
        )
        approver = "an admin" if role == Role.OWNER else "an admin or owner"
        response = Content(
            text=f"I'll post this:\n\n{draft}\nWaiting for approval from {approver}",
            actions=[f"{CONFIRM_POST}_TASK_NEEDS_CONFIRM"],
            source=message.content.source,
        )
        if callback is not None:
            await callback(response, None)
        logger.info("Post draft awaiting confirmation as task %s", task_id)
        return response


class ConfirmPostWorker:
    name = CONFIRM_POST

    async def execute(
        self, runtime: AgentRuntime, options: Mapping[str, Any], task: Task
    ) -> None:
        if task.room_id is None:
            raise ValueError(f"task {task.id} has no room to reply in")
        extensions = task.metadata.extensions
        source = extensions.get("source")
        reply = runtime.reply_channel(
            task.room_id, in_reply_to=extensions.get("in_reply_to"), source=source
        )
        option = options.get("option")

        if option == "cancel":
            await reply(
                Content(text="OK, I won't post it.", actions=[f"{CONFIRM_POST}_CANCELLED"])
            )
            await self._finish(runtime, task)
            return

        if option != "post":
            await reply(
                Content(
                    text="Bad choice. Should be 'post' or 'cancel'.",
                    actions=[f"{CONFIRM_POST}_INVALID_OPTION"],
                )
            )
            return

        publisher = cast(PublisherService, runtime.require_service(ServiceType.PUBLISHER))
        url = await publisher.publish(str(extensions.get("draft", "")), room_id=task.room_id)
        await reply(Content(text=url, url=url, actions=[CONFIRM_POST]))
        await self._finish(runtime, task)

    async def validate(self, runtime: AgentRuntime, message: Memory, state: State) -> bool:
        room = await _room_for(runtime, message, state)
        return await get_user_role(runtime, message.entity_id, room) in APPROVER_ROLES

    async def _finish(self, runtime: AgentRuntime, task: Task) -> None:
        if task.id is not None:
            await runtime.tasks.delete_task(task.id)


def confirm_post_plugin() -> Plugin:
    return Plugin(
        name="confirm_post",
        description="Drafts posts and publishes them after owner or admin approval",
        actions=[ConfirmPostAction()],
        task_workers=[ConfirmPostWorker()],
    )


__all__ = [
    "CONFIRM_POST",
    "POST_TEMPLATE",
    "ConfirmPostAction",
    "ConfirmPostWorker",
    "clean_draft",
    "confirm_post_plugin",
]
