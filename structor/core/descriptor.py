"""Type Descriptor dataclasses.

Descriptors are the only input the schema generator and the validation
layer look at. They are usually produced by ``structor.core.reflect`` but can
be built by hand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from structor.core.custom_types import CustomTypeSchema
from structor.core.naming import RenameRule


class TypeKind(str, Enum):
    """Kinds of type reference."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OPTIONAL = "optional"
    MAP = "map"
    ENUM = "enum"
    RECORD = "record"
    UNION = "union"
    CUSTOM = "custom"


PRIMITIVE_KINDS = frozenset(
    {TypeKind.STRING, TypeKind.INTEGER, TypeKind.NUMBER, TypeKind.BOOLEAN}
)


class PayloadKind(str, Enum):
    """Shape of a tagged-union variant payload."""

    NONE = "none"
    SINGLE = "single"
    TUPLE = "tuple"
    NAMED = "named"


@dataclass(frozen=True)
class FieldAnnotations:
    """Normalized per-field annotations."""

    description: str | None = None
    examples: tuple[Any, ...] = ()


@dataclass(frozen=True)
class ContainerAnnotations:
    """Normalized per-container (record or union) annotations."""

    description: str | None = None
    title: str | None = None
    examples: tuple[Any, ...] = ()
    validator: Callable[[Any], Any] | str | None = field(default=None, compare=False)
    rename_all: RenameRule | None = None


@dataclass(frozen=True)
class TypeRef:
    """Reference to a primitive, composite, or custom type."""

    kind: TypeKind
    item: TypeRef | None = None
    record: RecordDescriptor | None = None
    union: UnionDescriptor | None = None
    enum_values: tuple[Any, ...] = ()
    title: str | None = None
    custom: CustomTypeSchema | None = None
    py_type: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def primitive(cls, kind: TypeKind) -> TypeRef:
        if kind not in PRIMITIVE_KINDS:
            raise ValueError(f"{kind.value} is not a primitive kind")
        return cls(kind=kind)

    @classmethod
    def array_of(cls, item: TypeRef) -> TypeRef:
        return cls(kind=TypeKind.ARRAY, item=item)

    @classmethod
    def optional_of(cls, inner: TypeRef) -> TypeRef:
        return cls(kind=TypeKind.OPTIONAL, item=inner)

    @classmethod
    def map_of(cls, value: TypeRef) -> TypeRef:
        return cls(kind=TypeKind.MAP, item=value)

    @classmethod
    def of_record(cls, record: RecordDescriptor) -> TypeRef:
        return cls(kind=TypeKind.RECORD, record=record, py_type=record.py_type)

    @classmethod
    def of_union(cls, union: UnionDescriptor) -> TypeRef:
        return cls(kind=TypeKind.UNION, union=union, py_type=union.py_type)

    @classmethod
    def of_custom(cls, custom: CustomTypeSchema, py_type: Any = None) -> TypeRef:
        return cls(kind=TypeKind.CUSTOM, custom=custom, py_type=py_type)

    @property
    def is_optional(self) -> bool:
        return self.kind is TypeKind.OPTIONAL


@dataclass(frozen=True)
class FieldDescriptor:
    """One record field: python name, wire name, type and annotations."""

    name: str
    wire_name: str
    type_ref: TypeRef
    annotations: FieldAnnotations = FieldAnnotations()
    has_default: bool = False

    @property
    def required(self) -> bool:
        return not self.type_ref.is_optional


@dataclass(frozen=True)
class RecordDescriptor:
    """Ordered field list for a record type."""

    name: str
    fields: tuple[FieldDescriptor, ...]
    annotations: ContainerAnnotations = ContainerAnnotations()
    py_type: Any = field(default=None, compare=False, repr=False)

    @property
    def title(self) -> str:
        return self.annotations.title or self.name

    def field_by_wire_name(self, wire_name: str) -> FieldDescriptor | None:
        for fd in self.fields:
            if fd.wire_name == wire_name:
                return fd
        return None


@dataclass(frozen=True)
class VariantDescriptor:
    """One tagged-union variant.

    ``payload`` holds no refs for NONE, one ref for SINGLE, one ref per item
    for TUPLE and a single RECORD ref for NAMED.
    """

    name: str
    wire_name: str
    payload_kind: PayloadKind
    payload: tuple[TypeRef, ...] = ()
    description: str | None = None


@dataclass(frozen=True)
class UnionDescriptor:
    """Ordered variant list for a tagged union."""

    name: str
    variants: tuple[VariantDescriptor, ...]
    annotations: ContainerAnnotations = ContainerAnnotations()
    py_type: Any = field(default=None, compare=False, repr=False)

    @property
    def title(self) -> str:
        return self.annotations.title or self.name

    def variant_by_wire_name(self, wire_name: str) -> VariantDescriptor | None:
        for variant in self.variants:
            if variant.wire_name == wire_name:
                return variant
        return None


def fill_missing_optionals(ref: TypeRef, payload: Any) -> Any:
    """Return a copy of ``payload`` with absent optional fields set to None.

    The schema leaves optional fields out of ``required``, so a response may
    omit them; pydantic only treats them as optional when a default exists.
    Fields that declare a default stay absent so pydantic applies it.
    """

    kind = ref.kind
    if kind is TypeKind.OPTIONAL:
        if payload is None or ref.item is None:
            return payload
        return fill_missing_optionals(ref.item, payload)
    if kind is TypeKind.ARRAY and isinstance(payload, list) and ref.item is not None:
        return [fill_missing_optionals(ref.item, item) for item in payload]
    if kind is TypeKind.MAP and isinstance(payload, dict) and ref.item is not None:
        return {key: fill_missing_optionals(ref.item, value) for key, value in payload.items()}
    if kind is TypeKind.RECORD and isinstance(payload, dict) and ref.record is not None:
        return _fill_record(ref.record, payload)
    if kind is TypeKind.UNION and isinstance(payload, dict) and ref.union is not None:
        if len(payload) != 1:
            return payload
        wire_name, value = next(iter(payload.items()))
        variant = ref.union.variant_by_wire_name(wire_name)
        if variant is None:
            return payload
        if variant.payload_kind in (PayloadKind.SINGLE, PayloadKind.NAMED):
            return {wire_name: fill_missing_optionals(variant.payload[0], value)}
        if variant.payload_kind is PayloadKind.TUPLE and isinstance(value, list):
            items = [
                fill_missing_optionals(item_ref, item)
                for item_ref, item in zip(variant.payload, value)
            ]
            items.extend(value[len(items):])
            return {wire_name: items}
    return payload


def _fill_record(record: RecordDescriptor, payload: dict) -> dict:
    out = dict(payload)
    for fd in record.fields:
        if fd.wire_name in out:
            out[fd.wire_name] = fill_missing_optionals(fd.type_ref, out[fd.wire_name])
        elif fd.name in out:
            out[fd.name] = fill_missing_optionals(fd.type_ref, out[fd.name])
        elif fd.type_ref.is_optional and not fd.has_default:
            out[fd.wire_name] = None
    return out
