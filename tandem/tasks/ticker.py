"""TaskTicker: periodic driver for recurring ``queue`` tasks.

Thin wrapper around APScheduler's AsyncIOScheduler. Ticks run in the
runtime's event loop; a slow tick is never overlapped by the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Coroutine[Any, Any, Any]]

TICK_JOB_ID = "tasks:tick"


class TaskTicker:
    def __init__(self, callback: AsyncCallback, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._callback = callback
        self._interval = interval_seconds
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def start(self) -> None:
        """Start ticking. Idempotent; must be called with a running event loop."""
        if self._scheduler is not None:
            return
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            self._safe_tick,
            trigger=IntervalTrigger(seconds=self._interval),
            id=TICK_JOB_ID,
            name="task-tick",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Task ticker started (every %.2fs)", self._interval)

    def stop(self) -> None:
        """Stop ticking. Idempotent."""
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Task ticker stopped")

    async def tick(self) -> None:
        await self._safe_tick()

    async def _safe_tick(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("Task tick failed")


__all__ = ["TaskTicker"]
