"""Context providers every agent gets: clock, persona, room, history, choices."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tandem.models.common import utc_now
from tandem.models.memory import Memory
from tandem.models.state import ProviderResult, State
from tandem.models.tasks import AWAITING_CHOICE_TAG

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)


class TimeProvider:
    name = "time"
    description = "Current UTC date and time"
    position = -10
    private = False

    async def get(self, runtime: AgentRuntime, message: Memory, state: State) -> ProviderResult:
        now = utc_now()
        stamp = now.strftime("%Y-%m-%d %H:%M:%S UTC")
        return ProviderResult(
            values={"time": stamp},
            data={"time": now.isoformat()},
            text=f"The current date and time is {stamp}.",
        )


class CharacterProvider:
    name = "character"
    description = "Persona of the agent: name, bio, system prompt, topics"
    position = -5
    private = False

    async def get(self, runtime: AgentRuntime, message: Memory, state: State) -> ProviderResult:
        character = runtime.character
        bio = character.bio_text()
        topics = ", ".join(character.topics)
        examples = "\n".join(character.post_examples)
        lines = [f"# About {character.name}", bio]
        if topics:
            lines.append(f"{character.name} is interested in {topics}.")
        return ProviderResult(
            values={
                "agent_name": character.name,
                "bio": bio,
                "system": character.system or "",
                "topics": topics,
                "post_examples": examples,
            },
            text="\n".join(line for line in lines if line),
        )


class RoomProvider:
    name = "room"
    description = "The room the message arrived in"
    position = -5
    private = False

    async def get(self, runtime: AgentRuntime, message: Memory, state: State) -> ProviderResult:
        room = await runtime.adapter.get_room(message.room_id)
        if room is None:
            return ProviderResult()
        return ProviderResult(
            values={"room_name": room.name or "", "channel_type": room.type.value},
            data={"room": room},
        )


class RecentMessagesProvider:
    name = "recent_messages"
    description = "Conversation so far in this room, oldest first"
    position = 100
    private = False

    async def get(self, runtime: AgentRuntime, message: Memory, state: State) -> ProviderResult:
        recent = await runtime.messages.get_recent_messages(message.room_id)
        lines = []
        for memory in recent:
            speaker = (
                runtime.character.name if memory.entity_id == runtime.agent_id else memory.entity_id
            )
            lines.append(f"{speaker}: {memory.content.text}")
        formatted = "\n".join(lines)
        return ProviderResult(
            values={"recent_messages": formatted},
            data={"recent_messages": recent},
            text=f"# Conversation Messages\n{formatted}" if formatted else "",
        )


class ActionsProvider:
    name = "actions"
    description = "Actions available for this message"
    position = 50
    private = False

    async def get(self, runtime: AgentRuntime, message: Memory, state: State) -> ProviderResult:
        actions = runtime.actions.values()
        verdicts = await asyncio.gather(
            *(a.validate(runtime, message, state) for a in actions), return_exceptions=True
        )
        available = []
        for action, verdict in zip(actions, verdicts, strict=True):
            if isinstance(verdict, Exception):
                logger.debug("Action %s validation raised: %s", action.name, verdict)
            elif verdict:
                available.append(action)
        names = [a.name for a in available]
        text = "\n".join(f"- {a.name}: {a.description}" for a in available)
        return ProviderResult(
            values={"actions": ", ".join(names)},
            data={"action_names": names},
            text=f"# Available Actions\n{text}" if text else "",
        )


class ChoiceProvider:
    name = "choice"
    description = "Pending tasks waiting for the user to pick an option"
    position = 60
    private = False

    async def get(self, runtime: AgentRuntime, message: Memory, state: State) -> ProviderResult:
        pending = await runtime.tasks.get_tasks(room_id=message.room_id, tags=[AWAITING_CHOICE_TAG])
        pending = [t for t in pending if t.metadata.options]
        if not pending:
            return ProviderResult(values={"pending_choices": ""})

        blocks = []
        for task in pending:
            options = "\n".join(
                f"  - {o.name}: {o.description}" if o.description else f"  - {o.name}"
                for o in task.metadata.options
            )
            blocks.append(f"{task.name} ({task.id}): {task.description}\n{options}")
        text = "# Pending Tasks Awaiting Choice\n" + "\n".join(blocks)
        return ProviderResult(
            values={"pending_choices": text},
            data={"pending_tasks": pending},
            text=text,
        )


__all__ = [
    "ActionsProvider",
    "CharacterProvider",
    "ChoiceProvider",
    "RecentMessagesProvider",
    "RoomProvider",
    "TimeProvider",
]
