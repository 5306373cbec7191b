"""Structured logging setup with correlation context propagation.

Every record emitted while a turn is running carries the run, room and
entity identifiers of that turn, so interleaved turns from different rooms
can be told apart in one log stream.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from opentelemetry import trace as _trace_api


@dataclass(frozen=True, slots=True)
class CorrelationContext:
    """Correlation identifiers for grouping related log records."""

    run_id: str | None = None
    room_id: str | None = None
    entity_id: str | None = None


_EMPTY_CONTEXT = CorrelationContext()
_CORRELATION_CONTEXT: contextvars.ContextVar[CorrelationContext | None] = contextvars.ContextVar(
    "tandem_correlation_context",
    default=None,
)


def get_correlation_context() -> CorrelationContext:
    """Return current correlation IDs for the active execution context."""

    context = _CORRELATION_CONTEXT.get()
    if context is None:
        return _EMPTY_CONTEXT
    return context


def _current_otel_trace_id() -> str:
    """Extract the current OTel trace ID as a hex string, or empty."""
    ctx = _trace_api.get_current_span().get_span_context()
    if ctx and ctx.trace_id:
        return format(ctx.trace_id, "032x")
    return ""


class CorrelationFilter(logging.Filter):
    """Inject correlation fields into every ``LogRecord`` before formatting."""

    def filter(self, record: logging.LogRecord) -> bool:
        context: CorrelationContext = get_correlation_context()
        record.run_id = context.run_id
        record.room_id = context.room_id
        record.entity_id = context.entity_id
        record.otel_trace_id = _current_otel_trace_id()
        return True


class _JsonFormatter(logging.Formatter):
    """Render logs as compact JSON for machine-readable ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object | None] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", None),
            "room_id": getattr(record, "room_id", None),
            "entity_id": getattr(record, "entity_id", None),
            "trace_id": getattr(record, "otel_trace_id", None),
        }
        if record.exc_info is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def setup_logging(level: int | str = logging.INFO, json_output: bool = False) -> None:
    """Configure root logging once with correlation-aware handlers."""

    root_logger: logging.Logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.filters.clear()

    handler = logging.StreamHandler(stream=sys.stdout)
    if json_output:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s "
            "run_id=%(run_id)s room_id=%(room_id)s entity_id=%(entity_id)s "
            "trace_id=%(otel_trace_id)s "
            "%(message)s",
        )
    handler.setFormatter(formatter)

    correlation_filter = CorrelationFilter()
    handler.addFilter(correlation_filter)
    root_logger.addFilter(correlation_filter)
    root_logger.addHandler(handler)


@contextmanager
def correlation_scope(
    *,
    run_id: str | None = None,
    room_id: str | None = None,
    entity_id: str | None = None,
) -> Iterator[None]:
    """Temporarily apply correlation IDs to the current async execution context.

    Nested scopes inherit outer values unless explicitly overridden.
    """

    current: CorrelationContext = get_correlation_context()
    updated = CorrelationContext(
        run_id=current.run_id if run_id is None else run_id,
        room_id=current.room_id if room_id is None else room_id,
        entity_id=current.entity_id if entity_id is None else entity_id,
    )
    token: contextvars.Token[CorrelationContext | None] = _CORRELATION_CONTEXT.set(updated)
    try:
        yield
    finally:
        _CORRELATION_CONTEXT.reset(token)


__all__ = [
    "CorrelationContext",
    "CorrelationFilter",
    "correlation_scope",
    "get_correlation_context",
    "setup_logging",
]
