from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class Role(StrEnum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    NONE = "NONE"


class ChannelType(StrEnum):
    SELF = "SELF"
    DM = "DM"
    GROUP = "GROUP"
    VOICE_DM = "VOICE_DM"
    VOICE_GROUP = "VOICE_GROUP"
    FEED = "FEED"
    THREAD = "THREAD"
    WORLD = "WORLD"
    API = "API"
    FORUM = "FORUM"


class WorldMetadata(BaseModel):
    owner_id: str | None = None
    roles: dict[str, Role] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)
    extensions: dict[str, Any] = Field(default_factory=dict)


class World(BaseModel):
    id: str
    name: str | None = None
    agent_id: str
    server_id: str
    metadata: WorldMetadata = Field(default_factory=WorldMetadata)

    def role_of(self, entity_id: str) -> Role:
        if self.metadata.owner_id == entity_id:
            return Role.OWNER
        return self.metadata.roles.get(entity_id, Role.NONE)


class Room(BaseModel):
    id: str
    name: str | None = None
    agent_id: str | None = None
    source: str
    type: ChannelType
    channel_id: str | None = None
    server_id: str | None = None
    world_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


__all__ = ["ChannelType", "Role", "Room", "World", "WorldMetadata"]
