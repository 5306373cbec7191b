from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from tandem.models.common import utc_now

AWAITING_CHOICE_TAG = "AWAITING_CHOICE"
QUEUE_TAG = "queue"
REPEAT_TAG = "repeat"


class TaskOption(BaseModel):
    name: str
    description: str = ""


class TaskMetadata(BaseModel):
    options: list[TaskOption] = Field(default_factory=list)
    update_interval: float | None = Field(
        default=None,
        gt=0,
        description="Seconds between runs for tasks tagged 'queue'.",
    )
    extensions: dict[str, Any] = Field(default_factory=dict)

    def option_names(self) -> list[str]:
        return [option.name for option in self.options]


class Task(BaseModel):
    """Durable unit of deferred work, executed by the worker named ``name``."""

    id: str | None = None
    name: str
    description: str = ""
    room_id: str | None = None
    world_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def has_tags(self, tags: list[str] | None) -> bool:
        return not tags or set(tags).issubset(self.tags)


__all__ = [
    "AWAITING_CHOICE_TAG",
    "QUEUE_TAG",
    "REPEAT_TAG",
    "Task",
    "TaskMetadata",
    "TaskOption",
]
