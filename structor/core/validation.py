"""Structural and semantic checks applied to raw model responses."""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter, ValidationError

from structor.core.annotations import container_spec
from structor.core.descriptor import fill_missing_optionals
from structor.core.errors import SemanticValidationError, StructuralParseError
from structor.core.reflect import describe

logger = logging.getLogger(__name__)

_FRAGMENT_LIMIT = 200
_MAX_REPORTED_ERRORS = 10


def extract_json_text(raw: str) -> str | None:
    """Try deterministic minimal recovery of nearly-JSON model output.

    Strips a markdown code fence and any prose before the first ``{``/``[``
    or after the matching last ``}``/``]``. Returns None when nothing that
    looks like a JSON object or array remains.
    """

    repaired = raw.strip()

    if "```" in repaired:
        first = repaired.find("```")
        second = repaired.find("```", first + 3)
        if second > first:
            fenced = repaired[first + 3 : second]
            newline = fenced.find("\n")
            if newline != -1 and fenced[:newline].strip().isalpha():
                fenced = fenced[newline + 1 :]
            repaired = fenced.strip()

    starts = [idx for idx in (repaired.find("{"), repaired.find("[")) if idx != -1]
    if not starts:
        return None
    start = min(starts)
    closer = "}" if repaired[start] == "{" else "]"
    end = repaired.rfind(closer)
    if end <= start:
        return None
    return repaired[start : end + 1]


@lru_cache(maxsize=None)
def _cached_adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def _adapter(target: Any) -> TypeAdapter:
    try:
        hash(target)
    except TypeError:
        return TypeAdapter(target)
    return _cached_adapter(target)


def _truncate(text: str, limit: int = _FRAGMENT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def _decode(raw: str, *, repair: bool) -> Any:
    text = raw.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        first_error = exc
    if repair:
        candidate = extract_json_text(raw)
        if candidate is not None and candidate != text:
            try:
                payload = json.loads(candidate)
            except json.JSONDecodeError:
                pass
            else:
                logger.debug("recovered JSON from surrounding text")
                return payload
    pos = first_error.pos
    raise StructuralParseError(
        f"response is not valid JSON: {first_error.msg} "
        f"(line {first_error.lineno}, column {first_error.colno})",
        fragment=_truncate(text[max(0, pos - 40) : pos + 160]) or None,
    )


def _summarize(exc: ValidationError) -> str:
    lines = []
    for error in exc.errors()[:_MAX_REPORTED_ERRORS]:
        loc = ".".join(str(part) for part in error["loc"])
        lines.append(f"{loc}: {error['msg']}" if loc else error["msg"])
    extra = exc.error_count() - len(lines)
    if extra > 0:
        lines.append(f"... and {extra} more error(s)")
    return "; ".join(lines)


def _offending_fragment(payload: Any, exc: ValidationError) -> str | None:
    errors = exc.errors()
    if not errors:
        return None
    node = payload
    for part in errors[0]["loc"]:
        if isinstance(node, dict) and part in node:
            node = node[part]
        elif isinstance(node, list) and isinstance(part, int) and 0 <= part < len(node):
            node = node[part]
        else:
            break
    return _truncate(json.dumps(node, ensure_ascii=False, default=str))


def parse_structured(target: Any, raw: str, *, repair: bool = True) -> Any:
    """Deserialize ``raw`` into an instance of ``target``.

    Absent optional fields are read as null; unknown fields are ignored.
    Raises :class:`StructuralParseError` carrying the offending fragment.
    """

    payload = _decode(raw, repair=repair)
    payload = fill_missing_optionals(describe(target), payload)
    try:
        return _adapter(target).validate_python(payload)
    except ValidationError as exc:
        raise StructuralParseError(
            _summarize(exc), fragment=_offending_fragment(payload, exc)
        ) from exc


def check_semantics(instance: Any, target: Any = None) -> None:
    """Run the container validator of ``target`` against ``instance``.

    A validator signals failure by raising ``ValueError`` or by returning
    False, a non-empty message, or a list of messages.
    """

    target = target if target is not None else type(instance)
    spec = container_spec(target)
    if spec is None or spec.validator is None:
        return
    validator = spec.validator
    name = validator if isinstance(validator, str) else getattr(validator, "__name__", "validator")
    try:
        if isinstance(validator, str):
            outcome = getattr(instance, validator)()
        else:
            outcome = validator(instance)
    except SemanticValidationError:
        raise
    except ValueError as exc:
        raise SemanticValidationError(str(exc)) from exc

    if outcome is None or outcome is True:
        return
    if outcome is False:
        raise SemanticValidationError(f"{name} rejected the {type(instance).__name__} instance")
    if isinstance(outcome, str):
        if outcome:
            raise SemanticValidationError(outcome)
        return
    if isinstance(outcome, (list, tuple)):
        messages = [str(item) for item in outcome if item]
        if messages:
            raise SemanticValidationError("; ".join(messages))
        return
    raise TypeError(
        f"{name} returned {type(outcome).__name__}; expected None, bool, str or list"
    )


def validate_response(target: Any, raw: str, *, repair: bool = True) -> Any:
    """Parse ``raw`` and run the semantic check; return the instance."""

    instance = parse_structured(target, raw, repair=repair)
    check_semantics(instance, target)
    return instance


def serialize_instance(instance: Any, target: Any = None) -> Any:
    """Return the wire form of ``instance`` (aliases applied, unions single-key)."""

    target = target if target is not None else type(instance)
    return _adapter(target).dump_python(instance, mode="json", by_alias=True)


def to_json_text(instance: Any, target: Any = None, *, indent: int | None = None) -> str:
    return json.dumps(serialize_instance(instance, target), indent=indent, ensure_ascii=False)
