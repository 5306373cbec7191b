from __future__ import annotations

from tandem.models.character import Character, StyleGuide
from tandem.models.common import utc_now
from tandem.models.content import Content, Media
from tandem.models.events import (
    ActionEventPayload,
    EvaluatorEventPayload,
    EventPayload,
    EventType,
    MessagePayload,
    RunEventPayload,
    RunStatus,
)
from tandem.models.memory import (
    EmbeddingSearchResult,
    Memory,
    MemoryMetadata,
    MemoryScope,
    MemoryType,
)
from tandem.models.model_types import ModelType, ServiceType
from tandem.models.plugin import Plugin
from tandem.models.state import ProviderResult, State
from tandem.models.tasks import (
    AWAITING_CHOICE_TAG,
    QUEUE_TAG,
    REPEAT_TAG,
    Task,
    TaskMetadata,
    TaskOption,
)
from tandem.models.world import ChannelType, Role, Room, World, WorldMetadata

__all__ = [
    "AWAITING_CHOICE_TAG",
    "ActionEventPayload",
    "ChannelType",
    "Character",
    "Content",
    "EmbeddingSearchResult",
    "EvaluatorEventPayload",
    "EventPayload",
    "EventType",
    "Media",
    "Memory",
    "MemoryMetadata",
    "MemoryScope",
    "MemoryType",
    "MessagePayload",
    "ModelType",
    "Plugin",
    "ProviderResult",
    "QUEUE_TAG",
    "REPEAT_TAG",
    "Role",
    "Room",
    "RunEventPayload",
    "RunStatus",
    "ServiceType",
    "State",
    "StyleGuide",
    "Task",
    "TaskMetadata",
    "TaskOption",
    "World",
    "WorldMetadata",
    "utc_now",
]
