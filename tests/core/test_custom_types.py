"""Tests for the custom leaf type registry."""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

import pytest

from structor.core.custom_types import DEFAULT_REGISTRY, CustomTypeRegistry, CustomTypeSchema


class Opaque:
    pass


class BadHook:
    @classmethod
    def __llm_schema__(cls) -> dict:
        return {"type": "string"}


def test_default_registry_covers_standard_leaves() -> None:
    assert DEFAULT_REGISTRY.lookup(date).format == "date"
    assert DEFAULT_REGISTRY.lookup(timedelta).format == "duration"
    assert DEFAULT_REGISTRY.lookup(UUID).to_schema() == {
        "type": "string",
        "format": "uuid",
        "description": "UUID identifier string",
    }
    assert DEFAULT_REGISTRY.lookup(str) is None


def test_register_notifies_listeners_and_unregister() -> None:
    registry = CustomTypeRegistry()
    calls: list[str] = []
    registry.on_change(lambda: calls.append("changed"))

    registry.register(Opaque, CustomTypeSchema(kind="string", extra={"minLength": 4}))
    assert Opaque in registry
    assert registry.lookup(Opaque).to_schema() == {"type": "string", "minLength": 4}

    registry.unregister(Opaque)
    registry.unregister(Opaque)
    assert Opaque not in registry
    assert calls == ["changed", "changed"]


def test_register_rejects_non_schema() -> None:
    with pytest.raises(TypeError):
        CustomTypeRegistry().register(Opaque, {"type": "string"})  # type: ignore[arg-type]


def test_hook_must_return_custom_type_schema() -> None:
    with pytest.raises(TypeError) as excinfo:
        CustomTypeRegistry().lookup(BadHook)

    assert "BadHook.__llm_schema__()" in str(excinfo.value)
