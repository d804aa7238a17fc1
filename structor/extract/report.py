"""Failure classification and attempt history records."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from enum import Enum

from pydantic import ValidationError

from structor.core.errors import SemanticValidationError, StructuralParseError


class FailureKind(str, Enum):
    """Standardized failure kinds for extraction attempts."""

    BACKEND = "backend"
    STRUCTURAL_PARSE = "structural_parse"
    SEMANTIC_VALIDATION = "semantic_validation"
    UNKNOWN = "unknown"


_MAX_MESSAGE_LEN = 1000


def _truncate_message(message: str, limit: int = _MAX_MESSAGE_LEN) -> str:
    if len(message) <= limit:
        return message
    return message[:limit] + "..."


def classify_exception(exc: Exception) -> tuple[FailureKind, str]:
    """Classify an exception into a failure kind and normalized message."""

    from structor.extract.backend_base import BackendError

    message = getattr(exc, "message", None) or str(exc)

    if isinstance(exc, BackendError):
        return FailureKind.BACKEND, _truncate_message(str(exc))

    if isinstance(exc, (TimeoutError, ConnectionError)):
        return FailureKind.BACKEND, _truncate_message(message)

    if exc.__class__.__module__.startswith("requests"):
        return FailureKind.BACKEND, _truncate_message(message)

    if isinstance(exc, (StructuralParseError, json.JSONDecodeError, ValidationError)):
        return FailureKind.STRUCTURAL_PARSE, _truncate_message(message)

    if isinstance(exc, SemanticValidationError):
        return FailureKind.SEMANTIC_VALIDATION, _truncate_message(message)

    return FailureKind.UNKNOWN, _truncate_message(message)


@dataclass(frozen=True)
class AttemptFailure:
    """One failed attempt in an extraction run."""

    attempt: int
    kind: FailureKind
    message: str
    raw_response: str | None = None
    fragment: str | None = None

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["kind"] = self.kind.value
        return payload


class ExtractionExhaustedError(RuntimeError):
    """All attempts failed; carries the ordered failure history."""

    def __init__(
        self,
        failures: list[AttemptFailure],
        last_raw_response: str | None,
    ) -> None:
        self.failures = list(failures)
        self.last_raw_response = last_raw_response
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if not self.failures:
            return "extraction exhausted with no recorded attempts"
        last = self.failures[-1]
        return (
            f"extraction failed after {len(self.failures)} attempt(s); "
            f"last failure ({last.kind.value}): {last.message}"
        )
