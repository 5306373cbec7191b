from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime
    from tandem.models.events import EventPayload
    from tandem.protocols.components import Action, Evaluator, Provider, TaskWorker
    from tandem.protocols.memory import MemoryManager
    from tandem.protocols.services import Service

ModelHandler = Callable[["AgentRuntime", Mapping[str, Any]], Any]
EventHandler = Callable[["EventPayload"], Awaitable[None] | None]
PluginInit = Callable[[dict[str, Any], "AgentRuntime"], Awaitable[None]]
MemoryManagerFactory = Callable[["AgentRuntime"], "MemoryManager"]


@dataclass(slots=True)
class Plugin:
    """Bundle of capabilities registered into a runtime in one step."""

    name: str
    description: str = ""
    init: PluginInit | None = None
    config: dict[str, Any] = field(default_factory=dict)
    actions: list[Action] = field(default_factory=list)
    providers: list[Provider] = field(default_factory=list)
    evaluators: list[Evaluator] = field(default_factory=list)
    services: list[type[Service]] = field(default_factory=list)
    models: dict[str, ModelHandler] = field(default_factory=dict)
    events: dict[str, list[EventHandler]] = field(default_factory=dict)
    memory_managers: list[MemoryManagerFactory] = field(default_factory=list)
    task_workers: list[TaskWorker] = field(default_factory=list)
    extensions: dict[str, Any] = field(default_factory=dict)


__all__ = ["EventHandler", "MemoryManagerFactory", "ModelHandler", "Plugin", "PluginInit"]
