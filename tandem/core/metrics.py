"""Prometheus metrics for the runtime.

Metric objects are module-level because the Prometheus client keeps one
process-wide registry; labels carry the per-runtime distinctions.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, generate_latest

TURNS_TOTAL = Counter("tandem_turns_total", "Total turn invocations", ["agent"])
TURN_DURATION_SECONDS = Histogram(
    "tandem_turn_duration_seconds", "Turn processing duration in seconds", ["agent"]
)
ACTIONS_TOTAL = Counter(
    "tandem_actions_total", "Action handler invocations", ["action", "outcome"]
)
ACTION_DURATION_SECONDS = Histogram(
    "tandem_action_duration_seconds", "Action handler duration in seconds", ["action"]
)
EVALUATORS_TOTAL = Counter(
    "tandem_evaluators_total", "Evaluator handler invocations", ["evaluator", "outcome"]
)
PROVIDER_FAILURES_TOTAL = Counter(
    "tandem_provider_failures_total", "Providers that raised during state composition", ["provider"]
)
MODEL_CALLS_TOTAL = Counter("tandem_model_calls_total", "Total model calls", ["model_type"])
EVENT_HANDLER_FAILURES_TOTAL = Counter(
    "tandem_event_handler_failures_total", "Event handlers that raised", ["event"]
)
TASK_RESOLUTIONS_TOTAL = Counter(
    "tandem_task_resolutions_total", "Task resolution attempts", ["task", "outcome"]
)
MIGRATIONS_APPLIED_TOTAL = Counter(
    "tandem_migrations_applied_total", "Schema migrations applied to SQLite databases"
)

metrics_generate_latest = generate_latest


@contextmanager
def observe_turn_duration(agent: str) -> Iterator[None]:
    """Context manager that increments turn counter and observes duration."""
    TURNS_TOTAL.labels(agent=agent).inc()
    start = time.monotonic()
    try:
        yield
    finally:
        TURN_DURATION_SECONDS.labels(agent=agent).observe(time.monotonic() - start)


__all__ = [
    "ACTIONS_TOTAL",
    "ACTION_DURATION_SECONDS",
    "EVALUATORS_TOTAL",
    "EVENT_HANDLER_FAILURES_TOTAL",
    "MIGRATIONS_APPLIED_TOTAL",
    "MODEL_CALLS_TOTAL",
    "PROVIDER_FAILURES_TOTAL",
    "TASK_RESOLUTIONS_TOTAL",
    "TURNS_TOTAL",
    "TURN_DURATION_SECONDS",
    "metrics_generate_latest",
    "observe_turn_duration",
]
