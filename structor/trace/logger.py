"""JSONL sink for extraction trace events."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator


class TraceLogger:
    """Appends events as JSON lines; safe to share across runs."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")

    def append(self, event: dict) -> None:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"), default=str)
        self._fh.write(line + "\n")

    def flush(self) -> None:
        self._fh.flush()

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self) -> TraceLogger:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def read_events(path: str | Path, *, run_id: str | None = None) -> Iterator[dict]:
    """Yield events from a trace file, optionally only those of one run."""

    with Path(path).open(encoding="utf-8") as fh:
        for line in fh:
            if not line.strip():
                continue
            event = json.loads(line)
            if run_id is None or event.get("run_id") == run_id:
                yield event
