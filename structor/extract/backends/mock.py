"""Mock backend replaying queued outputs."""

from __future__ import annotations

from collections import deque
from typing import Iterable

from structor.extract.backend_base import BackendError, ExtractionRequest, TokenUsage


class MockBackend:
    """Backend that returns (or raises) queued items in order.

    Each item is either a response string or an exception to raise. Every
    request is recorded in ``requests`` for inspection.
    """

    name = "mock"

    def __init__(
        self,
        outputs: Iterable[str | Exception],
        *,
        usage: TokenUsage | None = None,
    ) -> None:
        self._outputs = deque(outputs)
        self._usage = usage
        self.requests: list[ExtractionRequest] = []
        self.last_usage: TokenUsage | None = None

    @property
    def remaining(self) -> int:
        return len(self._outputs)

    def respond(self, request: ExtractionRequest) -> str:
        """Return the next queued output."""

        self.requests.append(request)
        self.last_usage = None
        if not self._outputs:
            raise BackendError(
                provider=self.name,
                kind="bad_response",
                message=f"No queued output left for attempt {request.attempt}.",
                retryable=False,
            )
        item = self._outputs.popleft()
        if isinstance(item, Exception):
            raise item
        self.last_usage = self._usage
        return item
