from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from tandem.core.callbacks import HandlerCallback
from tandem.models.content import Content
from tandem.models.memory import Memory
from tandem.models.state import State
from tandem.models.tasks import AWAITING_CHOICE_TAG, Task
from tandem.tasks.scheduler import TaskOutcome

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z0-9_-]+")


def match_option(tasks: Sequence[Task], text: str | None) -> tuple[Task, str] | None:
    """First (task, option) pair whose option name appears as a word in *text*."""
    if not text:
        return None
    words = set(_WORD_RE.findall(text.lower()))
    for task in tasks:
        if task.id and task.id.lower() in text.lower():
            candidates = [task]
            break
    else:
        candidates = list(tasks)
    for task in candidates:
        for name in task.metadata.option_names():
            if name.lower() in words:
                return task, name
    return None


class ChooseOptionAction:
    name = "CHOOSE_OPTION"
    description = "Pick an option for a task that is waiting on the user's choice"
    similes = ["SELECT_OPTION", "SELECT", "PICK", "PICK_OPTION", "CHOOSE"]

    async def _pending(self, runtime: AgentRuntime, room_id: str) -> list[Task]:
        tasks = await runtime.tasks.get_tasks(room_id=room_id, tags=[AWAITING_CHOICE_TAG])
        return [t for t in tasks if t.metadata.options]

    async def validate(self, runtime: AgentRuntime, message: Memory, state: State) -> bool:
        return bool(await self._pending(runtime, message.room_id))

    async def handler(
        self,
        runtime: AgentRuntime,
        message: Memory,
        state: State,
        options: Mapping[str, Any],
        callback: HandlerCallback | None,
        responses: Sequence[Memory],
    ) -> object:
        pending = await self._pending(runtime, message.room_id)

        chosen: tuple[Task, str] | None = None
        if options.get("option"):
            task_id = options.get("task_id")
            if task_id:
                task = next((t for t in pending if t.id == task_id), None)
                if task is None:
                    logger.warning("Task %s is not awaiting a choice in this room", task_id)
            else:
                task = pending[0] if pending else None
            if task is not None:
                chosen = (task, str(options["option"]))
        else:
            chosen = match_option(pending, message.content.text)

        if chosen is None:
            listing = "\n".join(
                f"{t.name}: {', '.join(t.metadata.option_names())}" for t in pending
            )
            await self._reply(
                callback,
                message,
                f"I couldn't tell which option you meant. Pending choices:\n{listing}",
                "CHOOSE_OPTION_FAILED",
            )
            return None

        task, option = chosen
        logger.info("Resolving task %s with option %s", task.id, option)
        result = await runtime.tasks.resolve(task, {"option": option}, message, state)
        if result.outcome == TaskOutcome.rejected:
            await self._reply(
                callback,
                message,
                "You're not allowed to make that choice.",
                "CHOOSE_OPTION_FAILED",
            )
        elif result.outcome == TaskOutcome.stalled:
            await self._reply(
                callback,
                message,
                f"Nothing can handle '{task.name}' right now; it will stay pending.",
                "CHOOSE_OPTION_FAILED",
            )
        elif result.outcome == TaskOutcome.failed:
            await self._reply(
                callback,
                message,
                f"Selecting '{option}' for {task.name} failed.",
                "CHOOSE_OPTION_FAILED",
            )
        return result

    async def _reply(
        self, callback: HandlerCallback | None, message: Memory, text: str, action: str
    ) -> None:
        if callback is None:
            return
        await callback(
            Content(text=text, actions=[action], source=message.content.source), None
        )


__all__ = ["ChooseOptionAction", "match_option"]
