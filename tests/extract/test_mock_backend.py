"""Tests for the mock model backend."""

from __future__ import annotations

import pytest

from structor.extract.backend_base import BackendError, ExtractionRequest, TokenUsage
from structor.extract.backends.mock import MockBackend


def test_mock_backend_replays_outputs_in_order() -> None:
    backend = MockBackend(["one", "two"])

    assert backend.respond(ExtractionRequest(prompt="a")) == "one"
    assert backend.respond(ExtractionRequest(prompt="b", attempt=2)) == "two"
    assert [r.prompt for r in backend.requests] == ["a", "b"]
    assert backend.remaining == 0


def test_mock_backend_raises_queued_errors() -> None:
    error = BackendError(provider="mock", kind="rate_limit", message="slow down", retryable=True)
    backend = MockBackend([error])

    with pytest.raises(BackendError) as excinfo:
        backend.respond(ExtractionRequest(prompt="a"))

    assert excinfo.value is error


def test_mock_backend_fails_when_empty() -> None:
    backend = MockBackend([])

    with pytest.raises(BackendError) as excinfo:
        backend.respond(ExtractionRequest(prompt="a", attempt=4))

    assert excinfo.value.retryable is False
    assert "attempt 4" in excinfo.value.message


def test_mock_backend_reports_usage_on_success_only() -> None:
    usage = TokenUsage(input_tokens=3, output_tokens=4)
    backend = MockBackend(["ok"], usage=usage)

    backend.respond(ExtractionRequest(prompt="a"))
    assert backend.last_usage == usage

    with pytest.raises(BackendError):
        backend.respond(ExtractionRequest(prompt="b"))
    assert backend.last_usage is None
