"""Extraction settings and their environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got {value!r}")


def _parse_number(name: str, value: str, cast: type) -> int | float:
    try:
        return cast(value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a {cast.__name__}, got {value!r}") from exc


@dataclass(frozen=True)
class ExtractionConfig:
    """Retry bound, feedback switch and sampling settings for one extractor."""

    max_attempts: int = 3
    feedback_enabled: bool = True
    repair_json: bool = True
    temperature: float = 0.0
    max_tokens: int = 2000

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        if self.temperature < 0:
            raise ValueError("temperature must be non-negative")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ExtractionConfig:
        """Build a config from ``STRUCTOR_*`` variables, defaults elsewhere."""

        env = os.environ if environ is None else environ
        values: dict = {}
        if env.get("STRUCTOR_MAX_ATTEMPTS"):
            values["max_attempts"] = _parse_number(
                "STRUCTOR_MAX_ATTEMPTS", env["STRUCTOR_MAX_ATTEMPTS"], int
            )
        if env.get("STRUCTOR_FEEDBACK"):
            values["feedback_enabled"] = _parse_bool("STRUCTOR_FEEDBACK", env["STRUCTOR_FEEDBACK"])
        if env.get("STRUCTOR_REPAIR_JSON"):
            values["repair_json"] = _parse_bool(
                "STRUCTOR_REPAIR_JSON", env["STRUCTOR_REPAIR_JSON"]
            )
        if env.get("STRUCTOR_TEMPERATURE"):
            values["temperature"] = _parse_number(
                "STRUCTOR_TEMPERATURE", env["STRUCTOR_TEMPERATURE"], float
            )
        if env.get("STRUCTOR_MAX_TOKENS"):
            values["max_tokens"] = _parse_number(
                "STRUCTOR_MAX_TOKENS", env["STRUCTOR_MAX_TOKENS"], int
            )
        return cls(**values)
