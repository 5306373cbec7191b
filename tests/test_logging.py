from __future__ import annotations

import json
import logging

from tandem.core.logging import (
    CorrelationFilter,
    _JsonFormatter,
    correlation_scope,
    get_correlation_context,
)


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_correlation_filter_injects_fields() -> None:
    correlation_filter = CorrelationFilter()
    record = _record()

    with correlation_scope(run_id="run-1", room_id="room-1", entity_id="user-1"):
        assert correlation_filter.filter(record) is True

    assert record.run_id == "run-1"
    assert record.room_id == "room-1"
    assert record.entity_id == "user-1"


def test_correlation_scope_sets_and_clears_context() -> None:
    baseline = get_correlation_context()

    with correlation_scope(run_id="run-2", room_id="room-2", entity_id="user-2"):
        current = get_correlation_context()
        assert current.run_id == "run-2"
        assert current.room_id == "room-2"
        assert current.entity_id == "user-2"

    assert get_correlation_context() == baseline


def test_correlation_scope_nested_inherits_and_restores() -> None:
    baseline = get_correlation_context()

    with correlation_scope(run_id="run-outer", room_id="room-outer"):
        outer = get_correlation_context()
        assert outer.entity_id is None

        with correlation_scope(room_id="room-inner", entity_id="user-inner"):
            inner = get_correlation_context()
            assert inner.run_id == "run-outer"
            assert inner.room_id == "room-inner"
            assert inner.entity_id == "user-inner"

        assert get_correlation_context() == outer

    assert get_correlation_context() == baseline


def test_json_formatter_includes_correlation_ids() -> None:
    record = _record("turn started")
    with correlation_scope(run_id="run-3", room_id="room-3"):
        CorrelationFilter().filter(record)

    payload = json.loads(_JsonFormatter().format(record))

    assert payload["message"] == "turn started"
    assert payload["run_id"] == "run-3"
    assert payload["room_id"] == "room-3"
    assert payload["entity_id"] is None
