"""Schema export utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from structor.core.schema import schema_for, schema_to_text


def export_schema(tp: Any, out_path: str | Path) -> Path:
    """Write the schema document of ``tp`` to ``out_path`` as indented JSON."""

    path = Path(out_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(schema_to_text(schema_for(tp)) + "\n", encoding="utf-8")
    return path
