from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime


@runtime_checkable
class Service(Protocol):
    """Long-lived capability owned by a plugin, one live instance per type."""

    service_type: ClassVar[str]
    capability_description: str

    @classmethod
    async def start(cls, runtime: AgentRuntime) -> Service: ...

    async def stop(self) -> None: ...


@runtime_checkable
class PublisherService(Service, Protocol):
    """Posts text to an external platform and returns the post URL."""

    async def publish(self, text: str, *, room_id: str | None = None) -> str: ...


__all__ = ["PublisherService", "Service"]
