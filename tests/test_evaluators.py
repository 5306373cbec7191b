from __future__ import annotations

import pytest
from tandem.core.runtime import AgentRuntime
from tandem.models.events import EvaluatorEventPayload, EventType
from tandem.models.state import State

from tests.fakes import RecordingEvaluator, make_message


@pytest.mark.asyncio
class TestEvaluatorSelection:
    async def test_nothing_runs_without_response_or_always_run(self, runtime: AgentRuntime) -> None:
        evaluator = RecordingEvaluator(name="reflect")
        runtime.register_evaluator(evaluator)

        ran = await runtime.evaluate(make_message(), State(), did_respond=False)

        assert ran == []
        assert evaluator.validated == 0
        assert evaluator.log == []

    async def test_always_run_evaluator_runs_without_response(self, runtime: AgentRuntime) -> None:
        always = RecordingEvaluator(name="audit", always_run=True)
        gated = RecordingEvaluator(name="reflect")
        runtime.register_evaluator(always)
        runtime.register_evaluator(gated)

        ran = await runtime.evaluate(make_message(), State(), did_respond=False)

        assert [e.name for e in ran] == ["audit"]
        assert gated.validated == 0

    async def test_validated_evaluators_run_after_response(self, runtime: AgentRuntime) -> None:
        order: list[str] = []
        runtime.register_evaluator(RecordingEvaluator(name="first", log=order))
        runtime.register_evaluator(RecordingEvaluator(name="skipped", valid=False, log=order))
        runtime.register_evaluator(RecordingEvaluator(name="always", always_run=True, log=order))

        ran = await runtime.evaluate(make_message(), State(), did_respond=True)

        assert [e.name for e in ran] == ["first", "always"]
        assert order == ["first", "always"]

    async def test_raising_validation_excludes_evaluator(self, runtime: AgentRuntime) -> None:
        broken = RecordingEvaluator(name="broken", validate_error=RuntimeError("nope"))
        healthy = RecordingEvaluator(name="healthy")
        runtime.register_evaluator(broken)
        runtime.register_evaluator(healthy)

        ran = await runtime.evaluate(make_message(), State(), did_respond=True)

        assert [e.name for e in ran] == ["healthy"]


@pytest.mark.asyncio
class TestEvaluatorExecution:
    async def test_handler_failure_isolated(self, runtime: AgentRuntime) -> None:
        order: list[str] = []
        runtime.register_evaluator(
            RecordingEvaluator(name="fails", always_run=True, error=ValueError("x"), log=order)
        )
        runtime.register_evaluator(RecordingEvaluator(name="next", always_run=True, log=order))
        completed: list[EvaluatorEventPayload] = []
        runtime.register_event(EventType.EVALUATOR_COMPLETED, completed.append)

        await runtime.evaluate(make_message(), State())

        assert order == ["fails", "next"]
        assert [(p.evaluator_name, p.completed) for p in completed] == [
            ("fails", False),
            ("next", True),
        ]
