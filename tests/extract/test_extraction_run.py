"""Tests for the sans-IO extraction state machine."""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from structor.core.annotations import container
from structor.extract.backend_base import BackendError
from structor.extract.config import ExtractionConfig
from structor.extract.orchestrator import ExtractionRun, RunState
from structor.extract.report import ExtractionExhaustedError


class Point(BaseModel):
    x: int
    y: int


@container(validator=lambda point: 42)
class BrokenPoint(BaseModel):
    x: int


def test_start_builds_first_request() -> None:
    run = ExtractionRun("Where is the point?", Point)

    request = run.start()

    assert run.state is RunState.REQUESTING
    assert run.attempt == 1
    assert run.pending_request is request
    assert request.feedback is None
    assert request.schema["required"] == ["x", "y"]
    assert "Where is the point?" in request.render()


def test_successful_run_transitions() -> None:
    run = ExtractionRun("p", Point)
    run.start()

    assert run.receive('{"x": 1, "y": 2}') is None

    assert run.done
    assert run.result() == Point(x=1, y=2)
    assert [(t.source, t.target) for t in run.transitions] == [
        (RunState.INIT, RunState.REQUESTING),
        (RunState.REQUESTING, RunState.PARSING),
        (RunState.PARSING, RunState.VALIDATING),
        (RunState.VALIDATING, RunState.SUCCEEDED),
    ]


def test_failed_parse_moves_through_retrying() -> None:
    run = ExtractionRun("p", Point, config=ExtractionConfig(max_attempts=2))
    run.start()

    retry = run.receive('{"x": 1}')

    assert retry is not None
    assert retry.attempt == 2
    assert run.state is RunState.REQUESTING
    assert (RunState.PARSING, RunState.RETRYING) in [
        (t.source, t.target) for t in run.transitions
    ]
    assert "y: Field required" in retry.feedback


def test_exhaustion_is_reported_by_result() -> None:
    run = ExtractionRun("p", Point, config=ExtractionConfig(max_attempts=1))
    run.start()

    assert run.receive("nope") is None
    assert run.state is RunState.EXHAUSTED

    with pytest.raises(ExtractionExhaustedError) as excinfo:
        run.result()

    assert excinfo.value.last_raw_response == "nope"
    assert "after 1 attempt(s)" in str(excinfo.value)


def test_fatal_error_aborts_run() -> None:
    run = ExtractionRun("p", Point)
    run.start()
    error = BackendError(provider="x", kind="auth", message="denied", retryable=False)

    with pytest.raises(BackendError):
        run.receive_error(error)

    assert run.state is RunState.ABORTED
    assert run.failures == []


def test_validator_contract_violation_aborts_run() -> None:
    run = ExtractionRun("p", BrokenPoint)
    run.start()

    with pytest.raises(TypeError):
        run.receive('{"x": 1}')

    assert run.state is RunState.ABORTED
    assert run.done
    assert run.transitions[-1].source is RunState.VALIDATING
    with pytest.raises(RuntimeError):
        run.result()


def test_out_of_order_calls_are_rejected() -> None:
    run = ExtractionRun("p", Point)

    with pytest.raises(RuntimeError):
        run.receive("{}")
    with pytest.raises(RuntimeError):
        run.result()

    run.start()
    with pytest.raises(RuntimeError):
        run.start()
