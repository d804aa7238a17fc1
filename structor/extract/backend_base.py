"""Model backend boundary for structured extraction.

Backends turn an :class:`ExtractionRequest` into raw text. They never parse
or validate; that is the orchestrator's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from structor.extract.prompts import build_request_text


@dataclass(frozen=True)
class ExtractionRequest:
    """One outbound request: caller prompt, schema and optional feedback."""

    prompt: str
    schema: dict | None = None
    schema_name: str = "response"
    feedback: str | None = None
    attempt: int = 1
    temperature: float = 0.0
    max_tokens: int = 2000

    def render(self) -> str:
        """Return the full prompt text sent to text-only backends."""

        return build_request_text(self.prompt, self.schema, self.feedback)


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by a backend call."""

    input_tokens: int = 0
    output_tokens: int = 0
    model: str | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            model=other.model or self.model,
        )


class BackendError(Exception):
    """Standardized backend error with retry metadata."""

    def __init__(
        self,
        *,
        provider: str,
        kind: str,
        message: str,
        retryable: bool,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.kind = kind
        self.message = message
        self.retryable = retryable
        self.status_code = status_code
        super().__init__(self.__str__())

    def __str__(self) -> str:
        return (
            f"BackendError(provider={self.provider!r}, kind={self.kind!r}, "
            f"retryable={self.retryable}): {self.message}"
        )


class ModelBackend(Protocol):
    """Backend capability used by the extraction orchestrator."""

    name: str

    def respond(self, request: ExtractionRequest) -> str:
        """Return raw text for the request.

        Implementations should raise BackendError for backend failures.
        """

        raise NotImplementedError


_STATUS_KINDS: dict[int, tuple[str, bool]] = {
    400: ("bad_request", False),
    401: ("auth", False),
    403: ("permission", False),
    404: ("not_found", False),
    408: ("timeout", True),
    413: ("too_large", False),
    429: ("rate_limit", True),
    500: ("server", True),
    502: ("server", True),
    503: ("unavailable", True),
}


def classify_http_status(status_code: int) -> tuple[str, bool]:
    """Map an HTTP error status to ``(kind, retryable)``."""

    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    if 520 <= status_code <= 524:
        return "gateway", True
    if status_code >= 500:
        return "server", True
    return "bad_response", False


def http_error(provider: str, status_code: int, message: str) -> BackendError:
    kind, retryable = classify_http_status(status_code)
    return BackendError(
        provider=provider,
        kind=kind,
        message=f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}",
        retryable=retryable,
        status_code=status_code,
    )


def transport_error(provider: str, exc: Exception) -> BackendError | None:
    """Translate a ``requests`` transport exception; None for anything else."""

    name = exc.__class__.__name__
    if name in ("Timeout", "ReadTimeout", "ConnectTimeout"):
        return BackendError(provider=provider, kind="timeout", message=str(exc), retryable=True)
    if name == "RequestException" or exc.__class__.__module__.startswith("requests"):
        return BackendError(provider=provider, kind="network", message=str(exc), retryable=True)
    return None
