"""AgentRuntime: the context object that owns every registry for one agent.

Nothing here is module-level state. Two runtimes in one process share
nothing but the Prometheus registry, so tests and multi-agent hosts can
create as many as they like.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, cast

from tandem.config import RuntimeSettings
from tandem.core.actions import ActionDispatcher, ActionResult
from tandem.core.callbacks import HandlerCallback, ReplyChannel, ReplySink
from tandem.core.errors import (
    ModelNotFoundError,
    PluginInitError,
    ServiceNotFoundError,
    SettingNotFoundError,
)
from tandem.core.evaluators import EvaluatorDispatcher
from tandem.core.events import EventBus
from tandem.core.ids import as_uuid, new_id, string_to_uuid
from tandem.core.logging import correlation_scope, setup_logging
from tandem.core.metrics import MODEL_CALLS_TOTAL, observe_turn_duration
from tandem.core.registry import CapabilityRegistry, NamedRegistry
from tandem.core.state import StateComposer
from tandem.core.telemetry import get_tracer, init_tracing
from tandem.memory.manager import DEFAULT_TABLE_TYPES, TableMemoryManager
from tandem.memory.messages import MessageManager
from tandem.models.character import Character
from tandem.models.events import EventType, MessagePayload, RunEventPayload, RunStatus
from tandem.models.memory import Memory
from tandem.models.plugin import EventHandler, ModelHandler, Plugin
from tandem.models.state import State
from tandem.protocols.components import Action, Evaluator, Provider, TaskWorker
from tandem.protocols.memory import MemoryManager
from tandem.protocols.services import Service
from tandem.protocols.storage import DatabaseAdapter
from tandem.tasks.scheduler import TaskScheduler
from tandem.tasks.ticker import TaskTicker

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


def configure_observability(settings: RuntimeSettings) -> None:
    """Apply the logging and tracing sections of *settings* process-wide.

    Call once from the host process before creating runtimes.
    """
    setup_logging(settings.logging.level, json_output=settings.logging.json_output)
    init_tracing(settings.telemetry, service_name=settings.agent_name.lower())


@dataclass(slots=True)
class TurnResult:
    run_id: str
    message: Memory
    state: State
    action_results: list[ActionResult] = field(default_factory=list)
    evaluators: list[Evaluator] = field(default_factory=list)


class AgentRuntime:
    def __init__(
        self,
        character: Character,
        adapter: DatabaseAdapter,
        settings: RuntimeSettings | None = None,
        agent_id: str | None = None,
        plugins: Iterable[Plugin] = (),
    ) -> None:
        self.character = character
        self.adapter = adapter
        self.settings = settings or RuntimeSettings(agent_name=character.name)
        if agent_id is not None:
            self.agent_id = as_uuid(agent_id)
        elif character.id is not None:
            self.agent_id = as_uuid(character.id)
        else:
            self.agent_id = string_to_uuid(character.name)

        self.actions: NamedRegistry[Action] = NamedRegistry("action")
        self.providers: NamedRegistry[Provider] = NamedRegistry("provider")
        self.evaluators: NamedRegistry[Evaluator] = NamedRegistry("evaluator")
        self.services: CapabilityRegistry[str, Service] = CapabilityRegistry("service")
        self.models: CapabilityRegistry[str, ModelHandler] = CapabilityRegistry("model")
        self.memory_managers: CapabilityRegistry[str, MemoryManager] = CapabilityRegistry(
            "memory manager"
        )
        self.events = EventBus()

        self.composer = StateComposer(self, self.providers)
        self.action_dispatcher = ActionDispatcher(self, self.actions)
        self.evaluator_dispatcher = EvaluatorDispatcher(self, self.evaluators)
        self.tasks = TaskScheduler(self)

        self._plugins = list(plugins)
        self._registered_plugins: list[str] = []
        self._room_locks: dict[str, asyncio.Lock] = {}
        self._room_turns: dict[str, int] = {}
        self._ticker: TaskTicker | None = None
        self._initialized = False

        self.register_memory_manager(MessageManager(self))
        for table_name in DEFAULT_TABLE_TYPES:
            if table_name != "messages":
                self.register_memory_manager(TableMemoryManager(self, table_name))

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def plugins(self) -> list[str]:
        return list(self._registered_plugins)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        if self._initialized:
            return
        await self.adapter.init()
        for plugin in self._plugins:
            await self.register_plugin(plugin)
        if self.settings.tasks.enabled:
            self._ticker = TaskTicker(self.tasks.run_due_tasks, self.settings.tasks.tick_interval_s)
            self._ticker.start()
        self._initialized = True
        logger.info(
            "Runtime %s initialized with plugins: %s",
            self.character.name,
            ", ".join(self._registered_plugins) or "none",
        )

    async def stop(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None
        await self.events.drain()
        for service_type, service in self.services.snapshot().items():
            try:
                await service.stop()
            except Exception:
                logger.exception("Service %s failed to stop", service_type)
        self.services.clear()
        await self.adapter.close()
        self._initialized = False
        logger.info("Runtime %s stopped", self.character.name)

    async def register_plugin(self, plugin: Plugin) -> None:
        if plugin.name in self._registered_plugins:
            logger.warning("Plugin %s already registered; skipping", plugin.name)
            return

        if plugin.init is not None:
            try:
                await plugin.init(dict(plugin.config), self)
            except Exception as exc:
                raise PluginInitError(plugin.name, exc) from exc

        for action in plugin.actions:
            self.register_action(action)
        for provider in plugin.providers:
            self.register_provider(provider)
        for evaluator in plugin.evaluators:
            self.register_evaluator(evaluator)
        for factory in plugin.memory_managers:
            self.register_memory_manager(factory(self))
        for model_type, handler in plugin.models.items():
            self.register_model(model_type, handler)
        for event, handlers in plugin.events.items():
            for handler in handlers:
                self.register_event(event, handler)
        for worker in plugin.task_workers:
            self.register_task_worker(worker)
        for service_cls in plugin.services:
            try:
                await self.register_service(service_cls)
            except Exception as exc:
                raise PluginInitError(plugin.name, exc) from exc

        self._registered_plugins.append(plugin.name)
        logger.info("Registered plugin %s", plugin.name)

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def register_action(self, action: Action) -> None:
        self.actions.add(action)

    def register_provider(self, provider: Provider) -> None:
        self.providers.add(provider)

    def register_evaluator(self, evaluator: Evaluator) -> None:
        self.evaluators.add(evaluator)

    def register_task_worker(self, worker: TaskWorker) -> None:
        self.tasks.register_worker(worker)

    def get_task_worker(self, name: str) -> TaskWorker | None:
        return self.tasks.get_worker(name)

    def register_memory_manager(self, manager: MemoryManager) -> None:
        self.memory_managers.register(manager.table_name, manager)

    def get_memory_manager(self, table_name: str) -> MemoryManager | None:
        return self.memory_managers.get(table_name)

    @property
    def messages(self) -> MessageManager:
        return cast(MessageManager, self.memory_managers.get("messages"))

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    async def register_service(self, service_cls: type[Service]) -> Service:
        service = await service_cls.start(self)
        self.services.register(str(service_cls.service_type), service)
        logger.info("Started service %s", service_cls.service_type)
        return service

    def get_service(self, service_type: str) -> Service | None:
        return self.services.get(str(service_type))

    def require_service(self, service_type: str) -> Service:
        service = self.get_service(service_type)
        if service is None:
            raise ServiceNotFoundError(str(service_type))
        return service

    def get_all_services(self) -> Mapping[str, Service]:
        return self.services.snapshot()

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    def register_model(self, model_type: str, handler: ModelHandler) -> None:
        self.models.register(str(model_type), handler)

    def get_model(self, model_type: str) -> ModelHandler | None:
        return self.models.get(str(model_type))

    def has_model(self, model_type: str) -> bool:
        return str(model_type) in self.models

    async def use_model(self, model_type: str, params: Mapping[str, Any] | None = None) -> Any:
        """Call the handler registered for *model_type*.

        Handlers may be plain functions or coroutines; no registry lock is
        held while they run.
        """
        key = str(model_type)
        handler = self.models.get(key)
        if handler is None:
            raise ModelNotFoundError(key)
        MODEL_CALLS_TOTAL.labels(model_type=key).inc()
        result = handler(self, dict(params or {}))
        if inspect.isawaitable(result):
            result = await result
        return result

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def register_event(self, event: str, handler: EventHandler) -> None:
        self.events.register(event, handler)

    async def emit_event(self, events: str | Iterable[str], payload: object) -> None:
        await self.events.emit(events, payload)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, key: str) -> Any | None:
        """Look *key* up in character secrets, character settings, then runtime settings."""
        for source in (
            self.character.secrets,
            self.character.settings.get("secrets") or {},
            self.character.settings,
            self.settings.settings,
        ):
            if key in source:
                return source[key]
        return None

    def require_setting(self, key: str) -> Any:
        value = self.get_setting(key)
        if value is None:
            raise SettingNotFoundError(key)
        return value

    def set_setting(self, key: str, value: Any, *, secret: bool = False) -> None:
        if secret:
            self.character.secrets[key] = value
        else:
            self.character.settings[key] = value

    # ------------------------------------------------------------------
    # Turn processing
    # ------------------------------------------------------------------

    async def compose_state(
        self,
        message: Memory,
        filter_list: Iterable[str] | None = None,
        include_list: Iterable[str] | None = None,
    ) -> State:
        return await self.composer.compose(message, filter_list, include_list)

    async def process_actions(
        self,
        message: Memory,
        responses: Sequence[Memory],
        state: State | None = None,
        callback: HandlerCallback | None = None,
    ) -> list[ActionResult]:
        return await self.action_dispatcher.process_actions(message, responses, state, callback)

    async def evaluate(
        self,
        message: Memory,
        state: State | None = None,
        did_respond: bool = False,
        callback: HandlerCallback | None = None,
        responses: Sequence[Memory] | None = None,
    ) -> list[Evaluator]:
        return await self.evaluator_dispatcher.evaluate(
            message, state, did_respond, callback, responses
        )

    def reply_channel(
        self,
        room_id: str,
        *,
        in_reply_to: str | None = None,
        source: str | None = None,
        sink: ReplySink | None = None,
    ) -> ReplyChannel:
        return ReplyChannel(self, room_id, in_reply_to=in_reply_to, source=source, sink=sink)

    async def process_turn(
        self,
        message: Memory,
        responses: Sequence[Memory] = (),
        callback: HandlerCallback | None = None,
    ) -> TurnResult:
        """Run one turn for *message*: persist, compose, act, evaluate.

        Turns for the same room run one at a time in arrival order; turns for
        different rooms interleave freely.
        """
        room_id = message.room_id
        lock = self._room_locks.setdefault(room_id, asyncio.Lock())
        self._room_turns[room_id] = self._room_turns.get(room_id, 0) + 1
        try:
            async with lock:
                run_id = new_id()
                with (
                    correlation_scope(
                        run_id=run_id, room_id=room_id, entity_id=message.entity_id
                    ),
                    observe_turn_duration(self.character.name),
                    tracer.start_as_current_span("turn"),
                ):
                    return await self._run_turn(run_id, message, responses, callback)
        finally:
            # No turn for this room is running or waiting once the count hits zero.
            remaining = self._room_turns[room_id] - 1
            if remaining:
                self._room_turns[room_id] = remaining
            else:
                del self._room_turns[room_id]
                del self._room_locks[room_id]

    async def _run_turn(
        self,
        run_id: str,
        message: Memory,
        responses: Sequence[Memory],
        callback: HandlerCallback | None,
    ) -> TurnResult:
        source = message.content.source or "runtime"
        started_at = time.time()
        start = time.monotonic()
        run = RunEventPayload(
            runtime=self,
            source=source,
            run_id=run_id,
            message_id=message.id,
            room_id=message.room_id,
            entity_id=message.entity_id,
            start_time=started_at,
        )
        await self.emit_event(EventType.RUN_STARTED, run)

        loop = asyncio.get_running_loop()
        watchdog = loop.call_later(self.settings.runtime.run_timeout_s, self._report_timeout, run)
        try:
            message_id = await self.messages.create_memory(message)
            if message.id != message_id:
                message = message.model_copy(update={"id": message_id})
            if callback is None:
                callback = self.reply_channel(
                    message.room_id, in_reply_to=message.id, source=message.content.source
                )
            await self.emit_event(
                EventType.MESSAGE_RECEIVED,
                MessagePayload(runtime=self, source=source, message=message, callback=callback),
            )
            state = await self.compose_state(message)
            action_results = await self.process_actions(message, responses, state, callback)
            evaluated = await self.evaluate(
                message,
                state,
                did_respond=bool(responses),
                callback=callback,
                responses=responses,
            )
        except Exception as exc:
            watchdog.cancel()
            logger.exception("Turn %s failed", run_id)
            await self.emit_event(
                EventType.RUN_ENDED,
                dataclasses.replace(
                    run,
                    message_id=message.id,
                    status=RunStatus.error,
                    end_time=time.time(),
                    duration=time.monotonic() - start,
                    error=str(exc),
                ),
            )
            raise
        watchdog.cancel()

        await self.emit_event(
            EventType.RUN_ENDED,
            dataclasses.replace(
                run,
                message_id=message.id,
                status=RunStatus.completed,
                end_time=time.time(),
                duration=time.monotonic() - start,
            ),
        )
        return TurnResult(
            run_id=run_id,
            message=message,
            state=state,
            action_results=action_results,
            evaluators=evaluated,
        )

    def _report_timeout(self, run: RunEventPayload) -> None:
        logger.warning(
            "Turn %s in room %s exceeded %.1fs", run.run_id, run.room_id,
            self.settings.runtime.run_timeout_s,
        )
        self.events.emit_nowait(
            EventType.RUN_TIMEOUT,
            dataclasses.replace(
                run,
                status=RunStatus.timeout,
                end_time=time.time(),
                duration=time.time() - run.start_time,
                error="run timed out",
            ),
        )


__all__ = ["AgentRuntime", "TurnResult", "configure_observability"]
