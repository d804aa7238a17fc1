"""Leaf schemas for types that are not decomposed structurally."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Callable
from uuid import UUID


@dataclass(frozen=True, slots=True)
class CustomTypeSchema:
    """Leaf schema a type supplies instead of structural decomposition."""

    kind: str
    format: str | None = None
    description: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_schema(self) -> dict:
        """Render the leaf as a schema node."""

        node: dict[str, Any] = {"type": self.kind}
        if self.format is not None:
            node["format"] = self.format
        if self.description is not None:
            node["description"] = self.description
        for key, value in self.extra.items():
            node[key] = value
        return node


class CustomTypeRegistry:
    """Lookup table from Python types to their registered leaf schemas."""

    def __init__(self, entries: dict[type, CustomTypeSchema] | None = None) -> None:
        self._entries: dict[type, CustomTypeSchema] = dict(entries or {})
        self._listeners: list[Callable[[], None]] = []

    def register(self, tp: type, schema: CustomTypeSchema) -> None:
        """Register (or replace) the leaf schema for ``tp``."""

        if not isinstance(schema, CustomTypeSchema):
            raise TypeError("schema must be a CustomTypeSchema")
        self._entries[tp] = schema
        for listener in self._listeners:
            listener()

    def unregister(self, tp: type) -> None:
        """Remove ``tp`` if present."""

        if self._entries.pop(tp, None) is not None:
            for listener in self._listeners:
                listener()

    def on_change(self, listener: Callable[[], None]) -> None:
        """Call ``listener`` whenever the registry contents change."""

        self._listeners.append(listener)

    def lookup(self, tp: Any) -> CustomTypeSchema | None:
        """Return the leaf schema for ``tp``, or None if it is not custom.

        Exact registrations win; a ``__llm_schema__`` classmethod on the
        type is consulted next.
        """

        if not isinstance(tp, type):
            return None
        entry = self._entries.get(tp)
        if entry is not None:
            return entry
        hook = getattr(tp, "__llm_schema__", None)
        if hook is None:
            return None
        schema = hook()
        if not isinstance(schema, CustomTypeSchema):
            raise TypeError(
                f"{tp.__name__}.__llm_schema__() must return a CustomTypeSchema"
            )
        return schema

    def __contains__(self, tp: object) -> bool:
        return tp in self._entries


DEFAULT_REGISTRY = CustomTypeRegistry(
    {
        datetime: CustomTypeSchema(
            kind="string",
            format="date-time",
            description="ISO-8601 formatted date and time",
        ),
        date: CustomTypeSchema(
            kind="string",
            format="date",
            description="ISO-8601 formatted calendar date",
        ),
        time: CustomTypeSchema(
            kind="string",
            format="time",
            description="ISO-8601 formatted time of day",
        ),
        timedelta: CustomTypeSchema(
            kind="string",
            format="duration",
            description="ISO-8601 formatted duration",
        ),
        UUID: CustomTypeSchema(
            kind="string",
            format="uuid",
            description="UUID identifier string",
        ),
    }
)


def register_custom_type(tp: type, schema: CustomTypeSchema) -> None:
    """Register a leaf schema for ``tp`` in the default registry."""

    DEFAULT_REGISTRY.register(tp, schema)
