"""Tests for trace events and the JSONL trace logger."""

from __future__ import annotations

from pathlib import Path

import pytest

from structor.trace import ATTEMPT_FAILED, RUN_START, TRANSITION, TraceLogger, new_event, read_events


def test_new_event_fields() -> None:
    event = new_event(TRANSITION, "init -> requesting", run_id="r1", attempt=1)

    assert set(event) == {"event_id", "ts", "run_id", "attempt", "kind", "message", "data"}
    assert event["ts"].endswith("Z")
    assert event["run_id"] == "r1"


def test_unknown_event_kind_is_rejected() -> None:
    with pytest.raises(ValueError):
        new_event("misc", "anything")


def test_trace_logger_appends_jsonl(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "trace.jsonl"

    logger = TraceLogger(path)
    logger.append(new_event(RUN_START, "first", run_id="r1"))
    logger.append(new_event(ATTEMPT_FAILED, "second", run_id="r1", data={"k": 1}))
    logger.flush()
    logger.close()

    with TraceLogger(path) as again:
        again.append(new_event(RUN_START, "third", run_id="r2"))

    events = list(read_events(path))
    assert [event["message"] for event in events] == ["first", "second", "third"]
    assert events[1]["data"] == {"k": 1}
    assert [event["message"] for event in read_events(path, run_id="r2")] == ["third"]
