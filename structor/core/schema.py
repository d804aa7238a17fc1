"""Lower Type Descriptors into JSON-Schema-shaped documents."""

from __future__ import annotations

import copy
import json
from functools import lru_cache
from typing import Any

from structor.core.custom_types import DEFAULT_REGISTRY
from structor.core.descriptor import (
    FieldAnnotations,
    PRIMITIVE_KINDS,
    PayloadKind,
    RecordDescriptor,
    TypeKind,
    TypeRef,
    UnionDescriptor,
    VariantDescriptor,
)
from structor.core.reflect import describe, enum_value_kind


def generate_schema(ref: TypeRef) -> dict:
    """Return the schema document for ``ref``.

    Pure: every call builds fresh dicts, and key order follows declaration
    order, so equal descriptors give equal documents.
    """

    kind = ref.kind
    if kind in PRIMITIVE_KINDS:
        return {"type": kind.value}
    if kind is TypeKind.CUSTOM:
        return copy.deepcopy(ref.custom.to_schema())
    if kind is TypeKind.OPTIONAL:
        # Optionality is expressed by leaving the field out of "required".
        return generate_schema(ref.item)
    if kind is TypeKind.ARRAY:
        return {"type": "array", "items": generate_schema(ref.item)}
    if kind is TypeKind.MAP:
        return {"type": "object", "additionalProperties": generate_schema(ref.item)}
    if kind is TypeKind.ENUM:
        node: dict[str, Any] = {
            "type": enum_value_kind(ref.enum_values).value,
            "enum": list(ref.enum_values),
        }
        if ref.title:
            node["title"] = ref.title
        return node
    if kind is TypeKind.RECORD:
        return _record_schema(ref.record)
    if kind is TypeKind.UNION:
        return _union_schema(ref.union)
    raise ValueError(f"unknown type kind {kind!r}")


def _with_field_annotations(node: dict, annotations: FieldAnnotations) -> dict:
    if annotations.description is not None:
        node["description"] = annotations.description
    if annotations.examples:
        node["examples"] = copy.deepcopy(list(annotations.examples))
    return node


def _properties(record: RecordDescriptor) -> tuple[dict, list[str]]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    for fd in record.fields:
        node = generate_schema(fd.type_ref)
        properties[fd.wire_name] = _with_field_annotations(node, fd.annotations)
        if fd.required:
            required.append(fd.wire_name)
    return properties, required


def _record_schema(record: RecordDescriptor) -> dict:
    node: dict[str, Any] = {"type": "object", "title": record.title}
    if record.annotations.description:
        node["description"] = record.annotations.description
    properties, required = _properties(record)
    node["properties"] = properties
    node["required"] = required
    if record.annotations.examples:
        node["examples"] = copy.deepcopy(list(record.annotations.examples))
    return node


def _variant_payload(variant: VariantDescriptor) -> dict:
    kind = variant.payload_kind
    if kind is PayloadKind.NONE:
        return {"type": "null"}
    if kind is PayloadKind.SINGLE:
        return generate_schema(variant.payload[0])
    if kind is PayloadKind.TUPLE:
        count = len(variant.payload)
        return {
            "type": "array",
            "items": [generate_schema(item) for item in variant.payload],
            "minItems": count,
            "maxItems": count,
        }
    properties, required = _properties(variant.payload[0].record)
    return {
        "type": "object",
        "properties": properties,
        "required": required,
        "additionalProperties": False,
    }


def _union_schema(union: UnionDescriptor) -> dict:
    node: dict[str, Any] = {"title": union.title}
    if union.annotations.description:
        node["description"] = union.annotations.description
    node["oneOf"] = [
        {
            "type": "object",
            "description": variant.description or f"Variant {variant.wire_name}",
            "properties": {variant.wire_name: _variant_payload(variant)},
            "required": [variant.wire_name],
            "additionalProperties": False,
        }
        for variant in union.variants
    ]
    if union.annotations.examples:
        node["examples"] = copy.deepcopy(list(union.annotations.examples))
    return node


@lru_cache(maxsize=None)
def _schema_cached(tp: Any) -> dict:
    return generate_schema(describe(tp))


def schema_for(tp: Any) -> dict:
    """Return the schema document for a declared type.

    The document is cached per type; callers get their own deep copy.
    """

    try:
        hash(tp)
    except TypeError:
        return generate_schema(describe(tp))
    return copy.deepcopy(_schema_cached(tp))


def schema_to_text(schema: dict, *, indent: int = 2) -> str:
    """Render a schema document as JSON text."""

    return json.dumps(schema, indent=indent, ensure_ascii=False)


def clear_cache() -> None:
    _schema_cached.cache_clear()


DEFAULT_REGISTRY.on_change(clear_cache)
