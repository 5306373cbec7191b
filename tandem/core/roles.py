from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tandem.models.world import Role, Room

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)


async def get_user_role(runtime: AgentRuntime, entity_id: str, room: Room | None) -> Role:
    """Role of *entity_id* in the world that owns *room*; NONE outside a world."""
    if room is None or room.world_id is None:
        return Role.NONE
    world = await runtime.adapter.get_world(room.world_id)
    if world is None:
        logger.debug("Room %s references missing world %s", room.id, room.world_id)
        return Role.NONE
    return world.role_of(entity_id)


__all__ = ["get_user_role"]
