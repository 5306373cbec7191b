from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tandem.models.memory import Memory
from tandem.models.state import ProviderResult, State
from tandem.models.tasks import Task

if TYPE_CHECKING:
    from tandem.core.callbacks import HandlerCallback
    from tandem.core.runtime import AgentRuntime


@runtime_checkable
class Action(Protocol):
    name: str
    description: str
    similes: Sequence[str]

    async def validate(self, runtime: AgentRuntime, message: Memory, state: State) -> bool: ...

    async def handler(
        self,
        runtime: AgentRuntime,
        message: Memory,
        state: State,
        options: Mapping[str, Any],
        callback: HandlerCallback | None,
        responses: Sequence[Memory],
    ) -> object: ...


@runtime_checkable
class Evaluator(Protocol):
    name: str
    description: str
    always_run: bool

    async def validate(self, runtime: AgentRuntime, message: Memory, state: State) -> bool: ...

    async def handler(
        self,
        runtime: AgentRuntime,
        message: Memory,
        state: State,
        options: Mapping[str, Any],
        callback: HandlerCallback | None,
        responses: Sequence[Memory],
    ) -> object: ...


@runtime_checkable
class Provider(Protocol):
    name: str
    description: str
    position: int
    private: bool

    async def get(self, runtime: AgentRuntime, message: Memory, state: State) -> ProviderResult: ...


@runtime_checkable
class TaskWorker(Protocol):
    name: str

    async def execute(
        self, runtime: AgentRuntime, options: Mapping[str, Any], task: Task
    ) -> None: ...

    async def validate(self, runtime: AgentRuntime, message: Memory, state: State) -> bool: ...


__all__ = ["Action", "Evaluator", "Provider", "TaskWorker"]
