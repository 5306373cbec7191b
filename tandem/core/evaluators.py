"""Post-response evaluator dispatch."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from tandem.core.callbacks import HandlerCallback
from tandem.core.ids import new_id
from tandem.core.metrics import EVALUATORS_TOTAL
from tandem.core.registry import NamedRegistry
from tandem.core.telemetry import get_tracer
from tandem.models.events import EvaluatorEventPayload, EventType
from tandem.models.memory import Memory
from tandem.models.state import State
from tandem.protocols.components import Evaluator

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


class EvaluatorDispatcher:
    def __init__(self, runtime: AgentRuntime, evaluators: NamedRegistry[Evaluator]) -> None:
        self._runtime = runtime
        self._evaluators = evaluators

    async def select(self, message: Memory, state: State, did_respond: bool) -> list[Evaluator]:
        """Evaluators for this turn, in registration order.

        ``always_run`` evaluators are always chosen. The rest are only
        considered on turns the agent answered, and only if they validate.
        """
        registered = self._evaluators.values()
        gated = [e for e in registered if not e.always_run] if did_respond else []
        verdicts = await asyncio.gather(
            *(e.validate(self._runtime, message, state) for e in gated),
            return_exceptions=True,
        )
        passed: set[str] = set()
        for evaluator, verdict in zip(gated, verdicts, strict=True):
            if isinstance(verdict, Exception):
                logger.error(
                    "Validation of evaluator %s raised: %s", evaluator.name, verdict,
                    exc_info=verdict,
                )
            elif verdict:
                passed.add(evaluator.name)
        return [e for e in registered if e.always_run or e.name in passed]

    async def evaluate(
        self,
        message: Memory,
        state: State | None = None,
        did_respond: bool = False,
        callback: HandlerCallback | None = None,
        responses: Sequence[Memory] | None = None,
    ) -> list[Evaluator]:
        if not did_respond and not any(e.always_run for e in self._evaluators.values()):
            return []
        if state is None:
            state = await self._runtime.compose_state(message)

        selected = await self.select(message, state, did_respond)
        for evaluator in selected:
            await self._run(evaluator, message, state, callback, list(responses or []))
        return selected

    async def _run(
        self,
        evaluator: Evaluator,
        message: Memory,
        state: State,
        callback: HandlerCallback | None,
        responses: list[Memory],
    ) -> None:
        evaluator_id = new_id()
        source = message.content.source or "runtime"
        start = time.monotonic()
        await self._runtime.emit_event(
            EventType.EVALUATOR_STARTED,
            EvaluatorEventPayload(
                runtime=self._runtime,
                source=source,
                evaluator_id=evaluator_id,
                evaluator_name=evaluator.name,
                room_id=message.room_id,
                start_time=time.time(),
            ),
        )
        error: BaseException | None = None
        with tracer.start_as_current_span(f"evaluator {evaluator.name}"):
            try:
                await evaluator.handler(self._runtime, message, state, {}, callback, responses)
            except Exception as exc:
                error = exc
                logger.exception("Evaluator %s failed", evaluator.name)
        EVALUATORS_TOTAL.labels(
            evaluator=evaluator.name, outcome="error" if error else "ok"
        ).inc()
        await self._runtime.emit_event(
            EventType.EVALUATOR_COMPLETED,
            EvaluatorEventPayload(
                runtime=self._runtime,
                source=source,
                evaluator_id=evaluator_id,
                evaluator_name=evaluator.name,
                room_id=message.room_id,
                completed=error is None,
                elapsed=time.monotonic() - start,
                error=error,
            ),
        )


__all__ = ["EvaluatorDispatcher"]
