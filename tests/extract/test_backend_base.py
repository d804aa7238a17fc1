"""Tests for the backend boundary types."""

from __future__ import annotations

import pytest

from structor.extract.backend_base import (
    BackendError,
    ExtractionRequest,
    TokenUsage,
    classify_http_status,
    http_error,
    transport_error,
)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (400, ("bad_request", False)),
        (401, ("auth", False)),
        (403, ("permission", False)),
        (404, ("not_found", False)),
        (408, ("timeout", True)),
        (413, ("too_large", False)),
        (429, ("rate_limit", True)),
        (500, ("server", True)),
        (502, ("server", True)),
        (503, ("unavailable", True)),
        (522, ("gateway", True)),
        (504, ("server", True)),
        (418, ("bad_response", False)),
    ],
)
def test_classify_http_status(status_code: int, expected: tuple[str, bool]) -> None:
    assert classify_http_status(status_code) == expected


def test_http_error_carries_status() -> None:
    err = http_error("openai", 429, "slow down")

    assert err.status_code == 429
    assert err.retryable is True
    assert str(err) == (
        "BackendError(provider='openai', kind='rate_limit', retryable=True): HTTP 429: slow down"
    )


def test_transport_error_translation() -> None:
    class ConnectionError(Exception):
        pass

    ConnectionError.__module__ = "requests.exceptions"

    translated = transport_error("ollama", ConnectionError("refused"))
    assert translated is not None
    assert translated.kind == "network"
    assert translated.retryable is True
    assert transport_error("ollama", KeyError("x")) is None


def test_request_render_includes_schema_and_feedback() -> None:
    request = ExtractionRequest(
        prompt="Describe Heat.",
        schema={"type": "object"},
        feedback="PREVIOUS ATTEMPT 1 FAILED: bad",
    )

    text = request.render()

    assert text.startswith("Describe Heat.")
    assert "JSON SCHEMA:" in text
    assert '"type": "object"' in text
    assert text.endswith("PREVIOUS ATTEMPT 1 FAILED: bad")


def test_token_usage_addition() -> None:
    total = TokenUsage(1, 2, "a") + TokenUsage(3, 4)

    assert total == TokenUsage(4, 6, "a")
    assert total.total_tokens == 10


def test_backend_error_is_exception() -> None:
    with pytest.raises(BackendError):
        raise BackendError(provider="p", kind="k", message="m", retryable=False)
