from __future__ import annotations

import pytest
from tandem.tasks.ticker import TaskTicker

from tests.helpers import wait_until


def test_non_positive_interval_rejected() -> None:
    async def noop() -> None:
        return None

    with pytest.raises(ValueError, match="interval_seconds"):
        TaskTicker(noop, 0)


@pytest.mark.asyncio
class TestTaskTicker:
    async def test_start_and_stop_are_idempotent(self) -> None:
        async def noop() -> None:
            return None

        ticker = TaskTicker(noop, 10)
        ticker.start()
        ticker.start()
        assert ticker.running

        ticker.stop()
        ticker.stop()
        assert not ticker.running

    async def test_runs_callback_periodically(self) -> None:
        ticks: list[int] = []

        async def record() -> None:
            ticks.append(len(ticks))

        ticker = TaskTicker(record, 0.05)
        ticker.start()
        try:
            await wait_until(lambda: len(ticks) >= 2)
        finally:
            ticker.stop()

    async def test_failing_tick_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        async def broken() -> None:
            raise RuntimeError("tick exploded")

        ticker = TaskTicker(broken, 10)
        await ticker.tick()

        assert "Task tick failed" in caplog.text
