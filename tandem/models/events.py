"""Lifecycle event names and the payloads delivered to event handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from tandem.models.memory import Memory

if TYPE_CHECKING:
    from tandem.core.callbacks import HandlerCallback
    from tandem.core.runtime import AgentRuntime


class EventType(StrEnum):
    WORLD_JOINED = "WORLD_JOINED"
    WORLD_CONNECTED = "WORLD_CONNECTED"
    WORLD_LEFT = "WORLD_LEFT"

    ENTITY_JOINED = "ENTITY_JOINED"
    ENTITY_LEFT = "ENTITY_LEFT"
    ENTITY_UPDATED = "ENTITY_UPDATED"

    ROOM_JOINED = "ROOM_JOINED"
    ROOM_LEFT = "ROOM_LEFT"

    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    MESSAGE_SENT = "MESSAGE_SENT"

    VOICE_MESSAGE_RECEIVED = "VOICE_MESSAGE_RECEIVED"
    VOICE_MESSAGE_SENT = "VOICE_MESSAGE_SENT"

    REACTION_RECEIVED = "REACTION_RECEIVED"
    POST_GENERATED = "POST_GENERATED"
    INTERACTION_RECEIVED = "INTERACTION_RECEIVED"

    RUN_STARTED = "RUN_STARTED"
    RUN_ENDED = "RUN_ENDED"
    RUN_TIMEOUT = "RUN_TIMEOUT"

    ACTION_STARTED = "ACTION_STARTED"
    ACTION_COMPLETED = "ACTION_COMPLETED"

    EVALUATOR_STARTED = "EVALUATOR_STARTED"
    EVALUATOR_COMPLETED = "EVALUATOR_COMPLETED"


class RunStatus(StrEnum):
    started = "started"
    completed = "completed"
    timeout = "timeout"
    error = "error"


@dataclass(slots=True)
class EventPayload:
    runtime: AgentRuntime
    source: str
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class MessagePayload(EventPayload):
    message: Memory | None = None
    callback: HandlerCallback | None = None


@dataclass(slots=True)
class RunEventPayload(EventPayload):
    run_id: str = ""
    message_id: str | None = None
    room_id: str = ""
    entity_id: str = ""
    start_time: float = 0.0
    status: RunStatus = RunStatus.started
    end_time: float | None = None
    duration: float | None = None
    error: str | None = None


@dataclass(slots=True)
class ActionEventPayload(EventPayload):
    action_id: str = ""
    action_name: str = ""
    room_id: str | None = None
    start_time: float | None = None
    completed: bool = False
    elapsed: float | None = None
    error: BaseException | None = None


@dataclass(slots=True)
class EvaluatorEventPayload(EventPayload):
    evaluator_id: str = ""
    evaluator_name: str = ""
    room_id: str | None = None
    start_time: float | None = None
    completed: bool = False
    elapsed: float | None = None
    error: BaseException | None = None


__all__ = [
    "ActionEventPayload",
    "EvaluatorEventPayload",
    "EventPayload",
    "EventType",
    "MessagePayload",
    "RunEventPayload",
    "RunStatus",
]
