"""Action dispatch: resolve, validate and run the actions a turn's responses name."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tandem.core.callbacks import HandlerCallback
from tandem.core.ids import new_id
from tandem.core.metrics import ACTION_DURATION_SECONDS, ACTIONS_TOTAL
from tandem.core.registry import NamedRegistry
from tandem.core.telemetry import get_tracer
from tandem.models.events import ActionEventPayload, EventType
from tandem.models.memory import Memory
from tandem.models.state import State
from tandem.protocols.components import Action

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


def normalize_action_name(name: str) -> str:
    return name.strip().lower().replace("_", "")


@dataclass(slots=True)
class ActionResult:
    name: str
    ok: bool
    elapsed: float
    error: BaseException | None = None
    value: object = None


class ActionDispatcher:
    def __init__(self, runtime: AgentRuntime, actions: NamedRegistry[Action]) -> None:
        self._runtime = runtime
        self._actions = actions

    def resolve(self, name: str) -> Action | None:
        """Find an action by name, ignoring case and underscores, then by simile."""
        registered = self._actions.values()
        wanted = normalize_action_name(name)
        for action in registered:
            if normalize_action_name(action.name) == wanted:
                return action
        for action in registered:
            if any(normalize_action_name(simile) == wanted for simile in action.similes):
                return action
        return None

    async def process_actions(
        self,
        message: Memory,
        responses: Sequence[Memory],
        state: State | None = None,
        callback: HandlerCallback | None = None,
    ) -> list[ActionResult]:
        """Run every action named by *responses*, strictly in the order referenced.

        Unknown names and failed validations are logged and skipped. A handler
        that raises is recorded in its result; later actions still run.
        """
        if state is None:
            state = await self._runtime.compose_state(message)

        results: list[ActionResult] = []
        for response in responses:
            for name in response.content.actions:
                action = self.resolve(name)
                if action is None:
                    logger.warning("No action found for %s", name)
                    continue
                if not await self._validate(action, message, state):
                    logger.info("Action %s did not validate for message %s", action.name, message.id)
                    continue
                results.append(
                    await self.execute_action(
                        action,
                        message,
                        state,
                        options={},
                        callback=callback,
                        responses=responses,
                    )
                )
        return results

    async def execute_action(
        self,
        action: Action,
        message: Memory,
        state: State,
        *,
        options: Mapping[str, Any] | None = None,
        callback: HandlerCallback | None = None,
        responses: Sequence[Memory] = (),
    ) -> ActionResult:
        """Invoke one action's handler with start/complete events around it."""
        action_id = new_id()
        started_at = time.time()
        start = time.monotonic()
        await self._runtime.emit_event(
            EventType.ACTION_STARTED,
            ActionEventPayload(
                runtime=self._runtime,
                source=message.content.source or "runtime",
                action_id=action_id,
                action_name=action.name,
                room_id=message.room_id,
                start_time=started_at,
            ),
        )

        error: BaseException | None = None
        value: object = None
        with tracer.start_as_current_span(f"action {action.name}"):
            try:
                value = await action.handler(
                    self._runtime, message, state, dict(options or {}), callback, list(responses)
                )
            except Exception as exc:
                error = exc
                logger.exception("Action %s failed", action.name)

        elapsed = time.monotonic() - start
        ACTIONS_TOTAL.labels(action=action.name, outcome="error" if error else "ok").inc()
        ACTION_DURATION_SECONDS.labels(action=action.name).observe(elapsed)

        await self._runtime.emit_event(
            EventType.ACTION_COMPLETED,
            ActionEventPayload(
                runtime=self._runtime,
                source=message.content.source or "runtime",
                action_id=action_id,
                action_name=action.name,
                room_id=message.room_id,
                start_time=started_at,
                completed=error is None,
                elapsed=elapsed,
                error=error,
            ),
        )
        return ActionResult(
            name=action.name, ok=error is None, elapsed=elapsed, error=error, value=value
        )

    async def _validate(self, action: Action, message: Memory, state: State) -> bool:
        try:
            return bool(await action.validate(self._runtime, message, state))
        except Exception:
            logger.exception("Validation of action %s raised; skipping it", action.name)
            return False


__all__ = ["ActionDispatcher", "ActionResult", "normalize_action_name"]
