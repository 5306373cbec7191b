from __future__ import annotations

from datetime import timedelta

import pytest
from tandem.core.errors import TaskNotFoundError
from tandem.core.runtime import AgentRuntime
from tandem.models.common import utc_now
from tandem.models.tasks import (
    AWAITING_CHOICE_TAG,
    QUEUE_TAG,
    REPEAT_TAG,
    Task,
    TaskMetadata,
    TaskOption,
)
from tandem.tasks.scheduler import TaskOutcome

from tests.fakes import ROOM_ID, RecordingWorker, make_message

pytestmark = pytest.mark.asyncio


def _choice_task(name: str = "CONFIRM") -> Task:
    return Task(
        name=name,
        description="Confirm it",
        room_id=ROOM_ID,
        tags=[name, AWAITING_CHOICE_TAG],
        metadata=TaskMetadata(
            options=[TaskOption(name="post"), TaskOption(name="cancel")],
        ),
    )


class PostOrCancelWorker:
    name = "CONFIRM"

    def __init__(self) -> None:
        self.posted = 0
        self.cancelled = 0

    async def execute(self, runtime, options, task) -> None:
        if options["option"] == "cancel":
            self.cancelled += 1
            return
        if options["option"] == "post":
            self.posted += 1

    async def validate(self, runtime, message, state) -> bool:
        return True


class TestStorage:
    async def test_get_tasks_requires_all_tags(self, runtime: AgentRuntime) -> None:
        await runtime.tasks.create_task(Task(name="a", room_id=ROOM_ID, tags=["x", "y"]))
        await runtime.tasks.create_task(Task(name="b", room_id=ROOM_ID, tags=["x"]))

        found = await runtime.tasks.get_tasks(room_id=ROOM_ID, tags=["x", "y"])

        assert [t.name for t in found] == ["a"]

    async def test_has_pending(self, runtime: AgentRuntime) -> None:
        assert not await runtime.tasks.has_pending(ROOM_ID, ["CONFIRM"])
        await runtime.tasks.create_task(_choice_task())
        assert await runtime.tasks.has_pending(ROOM_ID, ["CONFIRM"])

    async def test_update_and_delete(self, runtime: AgentRuntime) -> None:
        task_id = await runtime.tasks.create_task(Task(name="a", room_id=ROOM_ID))
        await runtime.tasks.update_task(task_id, {"description": "changed"})

        updated = await runtime.tasks.get_task(task_id)
        assert updated is not None and updated.description == "changed"

        await runtime.tasks.delete_task(task_id)
        assert await runtime.tasks.get_task(task_id) is None


class TestResolve:
    async def test_cancel_path_never_posts(self, runtime: AgentRuntime) -> None:
        worker = PostOrCancelWorker()
        runtime.register_task_worker(worker)
        task_id = await runtime.tasks.create_task(_choice_task())

        result = await runtime.tasks.resolve(task_id, {"option": "cancel"})

        assert result.outcome == TaskOutcome.completed
        assert worker.cancelled == 1
        assert worker.posted == 0

    async def test_missing_task_raises(self, runtime: AgentRuntime) -> None:
        with pytest.raises(TaskNotFoundError):
            await runtime.tasks.resolve("no-such-task", {"option": "post"})

    async def test_missing_option_raises(self, runtime: AgentRuntime) -> None:
        runtime.register_task_worker(RecordingWorker(name="CONFIRM"))
        task_id = await runtime.tasks.create_task(_choice_task())

        with pytest.raises(ValueError, match="requires an option"):
            await runtime.tasks.resolve(task_id, {})

    async def test_unregistered_worker_stalls_and_keeps_task(self, runtime: AgentRuntime) -> None:
        task_id = await runtime.tasks.create_task(_choice_task())

        result = await runtime.tasks.resolve(task_id, {"option": "post"})

        assert result.outcome == TaskOutcome.stalled
        assert await runtime.tasks.get_task(task_id) is not None
        assert [t.id for t in await runtime.tasks.stalled_tasks(room_id=ROOM_ID)] == [task_id]

    async def test_rejected_by_worker_validation(self, runtime: AgentRuntime) -> None:
        worker = RecordingWorker(name="CONFIRM", allow=False)
        runtime.register_task_worker(worker)
        task_id = await runtime.tasks.create_task(_choice_task())

        result = await runtime.tasks.resolve(task_id, {"option": "post"}, make_message())

        assert result.outcome == TaskOutcome.rejected
        assert worker.calls == []

    async def test_worker_failure_keeps_task(self, runtime: AgentRuntime) -> None:
        runtime.register_task_worker(RecordingWorker(name="CONFIRM", error=RuntimeError("x")))
        task_id = await runtime.tasks.create_task(_choice_task())

        result = await runtime.tasks.resolve(task_id, {"option": "post"})

        assert result.outcome == TaskOutcome.failed
        assert isinstance(result.error, RuntimeError)
        assert await runtime.tasks.get_task(task_id) is not None

    async def test_worker_registered_after_task_created(self, runtime: AgentRuntime) -> None:
        task_id = await runtime.tasks.create_task(_choice_task())
        worker = RecordingWorker(name="CONFIRM")
        runtime.register_task_worker(worker)

        result = await runtime.tasks.resolve(task_id, {"option": "post"})

        assert result.ok
        assert worker.calls[0][0] == {"option": "post"}
        assert await runtime.tasks.stalled_tasks() == []


class TestQueueTasks:
    async def test_due_queue_task_runs_and_leaves_queue(self, runtime: AgentRuntime) -> None:
        worker = RecordingWorker(name="digest")
        runtime.register_task_worker(worker)
        task_id = await runtime.tasks.create_task(
            Task(name="digest", room_id=ROOM_ID, tags=[QUEUE_TAG])
        )

        results = await runtime.tasks.run_due_tasks()

        assert [r.outcome for r in results] == [TaskOutcome.completed]
        stored = await runtime.tasks.get_task(task_id)
        assert stored is not None and QUEUE_TAG not in stored.tags

        assert await runtime.tasks.run_due_tasks() == []
        assert len(worker.calls) == 1

    async def test_repeat_task_waits_for_interval(self, runtime: AgentRuntime) -> None:
        worker = RecordingWorker(name="heartbeat")
        runtime.register_task_worker(worker)
        created = utc_now() - timedelta(seconds=120)
        task_id = await runtime.tasks.create_task(
            Task(
                name="heartbeat",
                tags=[QUEUE_TAG, REPEAT_TAG],
                metadata=TaskMetadata(update_interval=60),
                created_at=created,
                updated_at=created,
            )
        )

        now = utc_now()
        first = await runtime.tasks.run_due_tasks(now)
        second = await runtime.tasks.run_due_tasks(now + timedelta(seconds=30))
        third = await runtime.tasks.run_due_tasks(now + timedelta(seconds=61))

        assert len(first) == 1
        assert second == []
        assert len(third) == 1
        stored = await runtime.tasks.get_task(task_id)
        assert stored is not None and QUEUE_TAG in stored.tags
        assert len(worker.calls) == 2

    async def test_task_needing_a_choice_does_not_block_the_queue(
        self, runtime: AgentRuntime
    ) -> None:
        needs_choice = RecordingWorker(name="needs_choice")
        digest = RecordingWorker(name="digest")
        runtime.register_task_worker(needs_choice)
        runtime.register_task_worker(digest)
        blocked_id = await runtime.tasks.create_task(
            Task(
                name="needs_choice",
                tags=[QUEUE_TAG],
                metadata=TaskMetadata(options=[TaskOption(name="x")]),
            )
        )
        await runtime.tasks.create_task(Task(name="digest", tags=[QUEUE_TAG]))

        results = await runtime.tasks.run_due_tasks()

        outcomes = {r.task.name: r.outcome for r in results}
        assert outcomes == {"needs_choice": TaskOutcome.failed, "digest": TaskOutcome.completed}
        assert isinstance(next(r for r in results if not r.ok).error, ValueError)
        assert needs_choice.calls == []
        assert len(digest.calls) == 1
        stored = await runtime.tasks.get_task(blocked_id)
        assert stored is not None and QUEUE_TAG in stored.tags
