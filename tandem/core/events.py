"""Process-wide typed event dispatch owned by one runtime instance."""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
from collections.abc import Iterable
from types import MappingProxyType

from tandem.core.metrics import EVENT_HANDLER_FAILURES_TOTAL
from tandem.models.plugin import EventHandler

logger = logging.getLogger(__name__)


class EventBus:
    """Maps event names to ordered handler lists.

    Emission is fire-and-forget from the emitter's point of view: handler
    results are discarded and each handler's failure is logged on its own,
    so one broken observer never stops the others or the emitter.
    """

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._handlers: MappingProxyType[str, tuple[EventHandler, ...]] = MappingProxyType({})
        self._pending: set[asyncio.Task[None]] = set()

    def register(self, event: str, handler: EventHandler) -> None:
        with self._write_lock:
            current = dict(self._handlers)
            current[str(event)] = (*current.get(str(event), ()), handler)
            self._handlers = MappingProxyType(current)

    def handlers(self, event: str) -> tuple[EventHandler, ...]:
        return self._handlers.get(str(event), ())

    def event_names(self) -> list[str]:
        return list(self._handlers)

    async def emit(self, events: str | Iterable[str], payload: object) -> None:
        """Invoke every handler registered for each of *events*, in order."""
        names = [events] if isinstance(events, str) else list(events)
        for name in names:
            for handler in self.handlers(name):
                await self._invoke(name, handler, payload)

    def emit_nowait(self, events: str | Iterable[str], payload: object) -> asyncio.Task[None]:
        """Schedule emission without waiting for handlers to finish."""
        task = asyncio.get_running_loop().create_task(self.emit(events, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for all emissions scheduled with :meth:`emit_nowait`."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _invoke(self, name: str, handler: EventHandler, payload: object) -> None:
        try:
            result = handler(payload)  # type: ignore[arg-type]
            if inspect.isawaitable(result):
                await result
        except Exception:
            EVENT_HANDLER_FAILURES_TOTAL.labels(event=name).inc()
            logger.exception(
                "Event handler %s for %s failed",
                getattr(handler, "__qualname__", repr(handler)),
                name,
            )


__all__ = ["EventBus"]
