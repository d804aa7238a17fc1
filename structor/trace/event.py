"""Extraction trace events.

One event is a flat dict::

    {"event_id", "ts", "run_id", "attempt", "kind", "message", "data"}

``run_id`` groups the events of one ``ExtractionRun`` and ``attempt`` is the
1-based attempt they belong to. ``kind`` is one of the constants below:

- ``run_start``: first request built; message names the target type.
- ``transition``: state change; message is ``"<source> -> <target>"`` and
  ``data`` holds both state values.
- ``attempt_failed``: a failed attempt; message is the failure text and
  ``data["failure_kind"]`` its kind.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

RUN_START = "run_start"
TRANSITION = "transition"
ATTEMPT_FAILED = "attempt_failed"

EVENT_KINDS = frozenset({RUN_START, TRANSITION, ATTEMPT_FAILED})


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_event(
    kind: str,
    message: str,
    *,
    run_id: str | None = None,
    attempt: int | None = None,
    data: dict | None = None,
) -> dict:
    if kind not in EVENT_KINDS:
        raise ValueError(f"unknown trace event kind {kind!r}")
    return {
        "event_id": uuid4().hex,
        "ts": _utc_now(),
        "run_id": run_id,
        "attempt": attempt,
        "kind": kind,
        "message": message,
        "data": data,
    }
