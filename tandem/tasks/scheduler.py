"""Durable tasks and the in-memory workers that execute them.

Task records live in storage and survive restarts; workers are registered
by plugins on every start. A task whose worker is not registered yet is
"stalled": it is reported, never dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from tandem.core.errors import TaskNotFoundError
from tandem.core.metrics import TASK_RESOLUTIONS_TOTAL
from tandem.core.registry import NamedRegistry
from tandem.models.common import utc_now
from tandem.models.memory import Memory
from tandem.models.state import State
from tandem.models.tasks import QUEUE_TAG, REPEAT_TAG, Task
from tandem.protocols.components import TaskWorker

if TYPE_CHECKING:
    from tandem.core.runtime import AgentRuntime

logger = logging.getLogger(__name__)


class TaskOutcome(StrEnum):
    completed = "completed"
    stalled = "stalled"
    rejected = "rejected"
    failed = "failed"


@dataclass(slots=True)
class TaskResolution:
    task: Task
    outcome: TaskOutcome
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == TaskOutcome.completed


class TaskScheduler:
    def __init__(self, runtime: AgentRuntime) -> None:
        self._runtime = runtime
        self._workers: NamedRegistry[TaskWorker] = NamedRegistry("task worker")

    # -- storage -----------------------------------------------------------

    async def create_task(self, task: Task) -> str:
        task_id = await self._runtime.adapter.create_task(task)
        logger.info("Created task %s (%s)", task_id, task.name)
        return task_id

    async def get_task(self, task_id: str) -> Task | None:
        return await self._runtime.adapter.get_task(task_id)

    async def get_tasks(
        self, *, room_id: str | None = None, tags: list[str] | None = None
    ) -> list[Task]:
        return await self._runtime.adapter.get_tasks(room_id=room_id, tags=tags)

    async def get_tasks_by_name(self, name: str) -> list[Task]:
        return await self._runtime.adapter.get_tasks_by_name(name)

    async def update_task(self, task_id: str, changes: Mapping[str, Any]) -> None:
        await self._runtime.adapter.update_task(task_id, dict(changes))

    async def delete_task(self, task_id: str) -> None:
        await self._runtime.adapter.delete_task(task_id)

    async def has_pending(self, room_id: str | None, tags: list[str]) -> bool:
        """True if a task carrying all *tags* already exists for *room_id*."""
        return bool(await self.get_tasks(room_id=room_id, tags=tags))

    # -- workers -----------------------------------------------------------

    def register_worker(self, worker: TaskWorker) -> None:
        self._workers.add(worker)
        logger.debug("Registered task worker %s", worker.name)

    def get_worker(self, name: str) -> TaskWorker | None:
        return self._workers.get(name)

    def workers(self) -> list[TaskWorker]:
        return self._workers.values()

    async def stalled_tasks(
        self, *, room_id: str | None = None, tags: list[str] | None = None
    ) -> list[Task]:
        tasks = await self.get_tasks(room_id=room_id, tags=tags)
        return [t for t in tasks if t.name not in self._workers]

    # -- execution ---------------------------------------------------------

    async def resolve(
        self,
        task_or_id: Task | str,
        options: Mapping[str, Any],
        message: Memory | None = None,
        state: State | None = None,
    ) -> TaskResolution:
        """Hand *task_or_id* to its worker.

        Raises:
            TaskNotFoundError: no task with that id exists.
            ValueError: the task offers options but none was chosen.
        """
        if isinstance(task_or_id, Task):
            task = task_or_id
        else:
            found = await self.get_task(task_or_id)
            if found is None:
                raise TaskNotFoundError(task_or_id)
            task = found

        if task.metadata.options and not options.get("option"):
            raise ValueError(
                f"task {task.id} requires an option: {', '.join(task.metadata.option_names())}"
            )

        worker = self.get_worker(task.name)
        if worker is None:
            logger.warning("No worker registered for task %s (%s); leaving it", task.id, task.name)
            return self._record(task, TaskOutcome.stalled)

        if message is not None and not await self._validate(worker, message, state):
            logger.info("Worker %s rejected resolution of task %s", worker.name, task.id)
            return self._record(task, TaskOutcome.rejected)

        try:
            await worker.execute(self._runtime, dict(options), task)
        except Exception as exc:
            logger.exception("Worker %s failed on task %s", worker.name, task.id)
            return self._record(task, TaskOutcome.failed, exc)
        return self._record(task, TaskOutcome.completed)

    async def run_due_tasks(self, now: datetime | None = None) -> list[TaskResolution]:
        """Execute every ``queue`` task whose update interval has elapsed."""
        now = now or utc_now()
        results: list[TaskResolution] = []
        for task in await self.get_tasks(tags=[QUEUE_TAG]):
            if not self._is_due(task, now):
                continue
            if task.id is None:
                continue
            try:
                result = await self.resolve(task, {})
            except ValueError as exc:
                logger.error(
                    "Queue task %s (%s) cannot run unattended: %s", task.id, task.name, exc
                )
                result = self._record(task, TaskOutcome.failed, exc)
            if result.outcome == TaskOutcome.stalled:
                results.append(result)
                continue
            if REPEAT_TAG in task.tags or not result.ok:
                await self.update_task(task.id, {"updated_at": now})
            elif await self.get_task(task.id) is not None:
                await self.update_task(
                    task.id, {"tags": [t for t in task.tags if t != QUEUE_TAG]}
                )
            results.append(result)
        return results

    @staticmethod
    def _is_due(task: Task, now: datetime) -> bool:
        interval = task.metadata.update_interval
        if interval is None:
            return True
        return now - task.updated_at >= timedelta(seconds=interval)

    async def _validate(self, worker: TaskWorker, message: Memory, state: State | None) -> bool:
        validate = getattr(worker, "validate", None)
        if validate is None:
            return True
        try:
            return bool(await validate(self._runtime, message, state or State.empty()))
        except Exception:
            logger.exception("Validation by worker %s raised; rejecting", worker.name)
            return False

    @staticmethod
    def _record(
        task: Task, outcome: TaskOutcome, error: BaseException | None = None
    ) -> TaskResolution:
        TASK_RESOLUTIONS_TOTAL.labels(task=task.name, outcome=outcome.value).inc()
        return TaskResolution(task=task, outcome=outcome, error=error)


__all__ = ["TaskOutcome", "TaskResolution", "TaskScheduler"]
