"""Trace logging helpers for extraction runs."""

from structor.trace.event import ATTEMPT_FAILED, EVENT_KINDS, RUN_START, TRANSITION, new_event
from structor.trace.logger import TraceLogger, read_events

__all__ = [
    "ATTEMPT_FAILED",
    "EVENT_KINDS",
    "RUN_START",
    "TRANSITION",
    "TraceLogger",
    "new_event",
    "read_events",
]
