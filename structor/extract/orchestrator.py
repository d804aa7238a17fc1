"""Extraction orchestrator: bounded retry with corrective feedback.

``ExtractionRun`` is the explicit state machine. It never talks to a
backend; callers feed it responses::

    run = ExtractionRun(prompt, Movie, config=config)
    request = run.start()
    while request is not None:
        try:
            request = run.receive(backend.respond(request))
        except BackendError as exc:
            request = run.receive_error(exc)
    movie = run.result()

``Extractor`` wraps that loop for a concrete backend, synchronously or
under asyncio.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any
from uuid import uuid4

from structor.core.errors import SemanticValidationError, StructuralParseError
from structor.core.schema import schema_for
from structor.core.validation import check_semantics, parse_structured
from structor.extract.backend_base import (
    BackendError,
    ExtractionRequest,
    ModelBackend,
    TokenUsage,
)
from structor.extract.config import ExtractionConfig
from structor.extract.prompts import build_feedback
from structor.extract.report import (
    AttemptFailure,
    ExtractionExhaustedError,
    FailureKind,
    classify_exception,
)
from structor.trace.event import ATTEMPT_FAILED, RUN_START, TRANSITION, new_event
from structor.trace.logger import TraceLogger

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    INIT = "init"
    REQUESTING = "requesting"
    PARSING = "parsing"
    VALIDATING = "validating"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


_TERMINAL = frozenset({RunState.SUCCEEDED, RunState.EXHAUSTED, RunState.ABORTED})

_ALLOWED: dict[RunState, frozenset[RunState]] = {
    RunState.INIT: frozenset({RunState.REQUESTING}),
    RunState.REQUESTING: frozenset(
        {RunState.PARSING, RunState.RETRYING, RunState.EXHAUSTED, RunState.ABORTED}
    ),
    RunState.PARSING: frozenset({RunState.VALIDATING, RunState.RETRYING, RunState.EXHAUSTED}),
    RunState.VALIDATING: frozenset(
        {RunState.SUCCEEDED, RunState.RETRYING, RunState.EXHAUSTED, RunState.ABORTED}
    ),
    RunState.RETRYING: frozenset({RunState.REQUESTING}),
}


@dataclass(frozen=True)
class Transition:
    """One recorded state change."""

    attempt: int
    source: RunState
    target: RunState


@dataclass(frozen=True)
class ExtractionResult:
    """Successful extraction with its attempt history."""

    value: Any
    attempts: int
    failures: tuple[AttemptFailure, ...] = ()
    usage: TokenUsage | None = None


def schema_name_for(target: Any) -> str:
    name = getattr(target, "__name__", None)
    return name if isinstance(name, str) and name.isidentifier() else "response"


class ExtractionRun:
    """Sans-IO state machine for one extraction call."""

    def __init__(
        self,
        prompt: str,
        target: Any,
        *,
        config: ExtractionConfig | None = None,
        schema: dict | None = None,
        trace_logger: TraceLogger | None = None,
    ) -> None:
        self.prompt = prompt
        self.target = target
        self.config = config or ExtractionConfig()
        self.schema = schema if schema is not None else schema_for(target)
        self.schema_name = schema_name_for(target)
        self.trace_logger = trace_logger
        self.run_id = uuid4().hex
        self.state = RunState.INIT
        self.attempt = 0
        self.failures: list[AttemptFailure] = []
        self.transitions: list[Transition] = []
        self.requests: list[ExtractionRequest] = []
        self.pending_request: ExtractionRequest | None = None
        self.last_raw_response: str | None = None
        self._value: Any = None

    @property
    def done(self) -> bool:
        return self.state in _TERMINAL

    def start(self) -> ExtractionRequest:
        """Build the first request."""

        self._require(RunState.INIT)
        self._trace(RUN_START, f"extracting {self.schema_name}")
        return self._next_request(feedback=None)

    def receive(self, raw: str) -> ExtractionRequest | None:
        """Consume a backend response; return the next request, or None when done."""

        self._require(RunState.REQUESTING)
        self.pending_request = None
        self.last_raw_response = raw

        self._move(RunState.PARSING)
        try:
            instance = parse_structured(self.target, raw, repair=self.config.repair_json)
        except StructuralParseError as exc:
            return self._fail(exc, raw_response=raw, fragment=exc.fragment)

        self._move(RunState.VALIDATING)
        try:
            check_semantics(instance, self.target)
        except SemanticValidationError as exc:
            return self._fail(exc, raw_response=raw, fragment=None)
        except TypeError as exc:
            self._move(RunState.ABORTED)
            logger.error(
                "extraction of %s aborted on attempt %d: %s", self.schema_name, self.attempt, exc
            )
            raise

        self._value = instance
        self._move(RunState.SUCCEEDED)
        logger.info(
            "extraction of %s succeeded on attempt %d/%d",
            self.schema_name,
            self.attempt,
            self.config.max_attempts,
        )
        return None

    def receive_error(self, error: BackendError) -> ExtractionRequest | None:
        """Consume a backend error.

        Fatal errors are re-raised unchanged; retryable ones consume the
        attempt and retry without feedback.
        """

        self._require(RunState.REQUESTING)
        self.pending_request = None
        if not error.retryable:
            self._move(RunState.ABORTED)
            logger.error(
                "extraction of %s aborted on attempt %d: %s", self.schema_name, self.attempt, error
            )
            raise error
        return self._fail(error, raw_response=None, fragment=None)

    def result(self) -> Any:
        """Return the extracted instance or raise the exhausted error."""

        if self.state is RunState.SUCCEEDED:
            return self._value
        if self.state is RunState.EXHAUSTED:
            raise ExtractionExhaustedError(self.failures, self.last_raw_response)
        if self.state is RunState.ABORTED:
            raise RuntimeError(f"extraction run was aborted on attempt {self.attempt}")
        raise RuntimeError(f"extraction run is not finished (state={self.state.value})")

    def _fail(
        self,
        exc: Exception,
        *,
        raw_response: str | None,
        fragment: str | None,
    ) -> ExtractionRequest | None:
        kind, message = classify_exception(exc)
        failure = AttemptFailure(
            attempt=self.attempt,
            kind=kind,
            message=message,
            raw_response=raw_response,
            fragment=fragment,
        )
        self.failures.append(failure)
        self._trace(ATTEMPT_FAILED, message, data={"failure_kind": kind.value})

        if self.attempt >= self.config.max_attempts:
            self._move(RunState.EXHAUSTED)
            logger.error(
                "extraction of %s exhausted after %d attempt(s); last failure %s: %s",
                self.schema_name,
                self.attempt,
                kind.value,
                message,
            )
            return None

        logger.warning(
            "attempt %d/%d for %s failed (%s); retrying: %s",
            self.attempt,
            self.config.max_attempts,
            self.schema_name,
            kind.value,
            message,
        )
        self._move(RunState.RETRYING)
        feedback = None
        if self.config.feedback_enabled and kind is not FailureKind.BACKEND:
            feedback = build_feedback(failure)
        return self._next_request(feedback=feedback)

    def _next_request(self, *, feedback: str | None) -> ExtractionRequest:
        self.attempt += 1
        request = ExtractionRequest(
            prompt=self.prompt,
            schema=self.schema,
            schema_name=self.schema_name,
            feedback=feedback,
            attempt=self.attempt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        self._move(RunState.REQUESTING)
        self.pending_request = request
        self.requests.append(request)
        return request

    def _require(self, state: RunState) -> None:
        if self.state is not state:
            raise RuntimeError(
                f"expected state {state.value}, run is in state {self.state.value}"
            )

    def _move(self, target: RunState) -> None:
        if target not in _ALLOWED.get(self.state, frozenset()):
            raise RuntimeError(f"illegal transition {self.state.value} -> {target.value}")
        self.transitions.append(Transition(self.attempt, self.state, target))
        self._trace(
            TRANSITION,
            f"{self.state.value} -> {target.value}",
            data={"source": self.state.value, "target": target.value},
        )
        self.state = target

    def _trace(self, kind: str, message: str, *, data: dict | None = None) -> None:
        if self.trace_logger is None:
            return
        self.trace_logger.append(
            new_event(kind, message, run_id=self.run_id, attempt=self.attempt, data=data)
        )


def _collect_usage(backend: Any, total: TokenUsage | None) -> TokenUsage | None:
    usage = getattr(backend, "last_usage", None)
    if not isinstance(usage, TokenUsage):
        return total
    return usage if total is None else total + usage


class Extractor:
    """Drives :class:`ExtractionRun` against a model backend."""

    def __init__(
        self,
        backend: ModelBackend,
        config: ExtractionConfig | None = None,
        *,
        trace_logger: TraceLogger | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or ExtractionConfig()
        self.trace_logger = trace_logger

    def new_run(
        self,
        prompt: str,
        target: Any,
        *,
        max_attempts: int | None = None,
        feedback_enabled: bool | None = None,
    ) -> ExtractionRun:
        config = self.config
        overrides: dict = {}
        if max_attempts is not None:
            overrides["max_attempts"] = max_attempts
        if feedback_enabled is not None:
            overrides["feedback_enabled"] = feedback_enabled
        if overrides:
            config = replace(config, **overrides)
        return ExtractionRun(prompt, target, config=config, trace_logger=self.trace_logger)

    def materialize(
        self,
        prompt: str,
        target: Any,
        *,
        max_attempts: int | None = None,
        feedback_enabled: bool | None = None,
    ) -> Any:
        """Extract an instance of ``target`` from the backend's answer to ``prompt``."""

        return self.materialize_with_result(
            prompt, target, max_attempts=max_attempts, feedback_enabled=feedback_enabled
        ).value

    def materialize_with_result(
        self,
        prompt: str,
        target: Any,
        *,
        max_attempts: int | None = None,
        feedback_enabled: bool | None = None,
    ) -> ExtractionResult:
        run = self.new_run(
            prompt, target, max_attempts=max_attempts, feedback_enabled=feedback_enabled
        )
        usage: TokenUsage | None = None
        request: ExtractionRequest | None = run.start()
        while request is not None:
            try:
                raw = self.backend.respond(request)
            except BackendError as exc:
                request = run.receive_error(exc)
                continue
            usage = _collect_usage(self.backend, usage)
            request = run.receive(raw)
        return ExtractionResult(
            value=run.result(),
            attempts=run.attempt,
            failures=tuple(run.failures),
            usage=usage,
        )

    async def amaterialize(
        self,
        prompt: str,
        target: Any,
        *,
        max_attempts: int | None = None,
        feedback_enabled: bool | None = None,
    ) -> Any:
        result = await self.amaterialize_with_result(
            prompt, target, max_attempts=max_attempts, feedback_enabled=feedback_enabled
        )
        return result.value

    async def amaterialize_with_result(
        self,
        prompt: str,
        target: Any,
        *,
        max_attempts: int | None = None,
        feedback_enabled: bool | None = None,
    ) -> ExtractionResult:
        """Async twin of :meth:`materialize_with_result`.

        Uses the backend's ``arespond`` coroutine when it has one, otherwise
        runs ``respond`` in a worker thread.
        """

        run = self.new_run(
            prompt, target, max_attempts=max_attempts, feedback_enabled=feedback_enabled
        )
        usage: TokenUsage | None = None
        request: ExtractionRequest | None = run.start()
        while request is not None:
            try:
                raw = await self._arespond(request)
            except BackendError as exc:
                request = run.receive_error(exc)
                continue
            usage = _collect_usage(self.backend, usage)
            request = run.receive(raw)
        return ExtractionResult(
            value=run.result(),
            attempts=run.attempt,
            failures=tuple(run.failures),
            usage=usage,
        )

    async def _arespond(self, request: ExtractionRequest) -> str:
        arespond = getattr(self.backend, "arespond", None)
        if arespond is not None:
            return await arespond(request)
        return await asyncio.to_thread(self.backend.respond, request)

    def generate(self, prompt: str) -> str:
        """Return the backend's raw text for ``prompt`` with no schema."""

        request = ExtractionRequest(
            prompt=prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return self.backend.respond(request)
