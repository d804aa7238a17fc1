"""Tests for schema export."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel

from structor.core.schema import schema_for
from structor.core.schema_export import export_schema


class Movie(BaseModel):
    title: str
    year: int


def test_export_schema(tmp_path: Path) -> None:
    out_path = tmp_path / "schemas" / "movie.json"

    written = export_schema(Movie, str(out_path))

    assert written == out_path
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert payload == schema_for(Movie)
    assert list(payload["properties"]) == ["title", "year"]
