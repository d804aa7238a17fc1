"""Tagged unions declared as annotated class bodies.

Example::

    class Shape(TaggedUnion):
        Circle: float
        Rect: tuple[float, float]
        Moved: MovePayload          # a BaseModel gives named fields
        Empty: None

    Shape.Circle(2.0).to_wire() == {"Circle": 2.0}

Every variant travels as a single-key object keyed by its wire name; a
payload-less variant carries ``null``.
"""

from __future__ import annotations

import functools
import json
import typing
from dataclasses import dataclass, field
from typing import Annotated, Any, ClassVar, get_args, get_origin

from pydantic import BaseModel, TypeAdapter
from pydantic_core import core_schema

from structor.core.annotations import LLMAnnotation, container_spec, find_llm_marker
from structor.core.descriptor import PayloadKind
from structor.core.errors import SchemaDefinitionError

_SPECS_ATTR = "__variant_specs__"


@dataclass
class VariantSpec:
    """Reflected variant: declared name, wire name, payload annotation."""

    name: str
    wire_name: str
    payload_kind: PayloadKind
    annotation: Any
    marker: LLMAnnotation | None = None
    _adapter: TypeAdapter | None = field(default=None, repr=False)

    @property
    def adapter(self) -> TypeAdapter:
        if self._adapter is None:
            self._adapter = TypeAdapter(self.annotation)
        return self._adapter

    @property
    def tuple_arity(self) -> int:
        return len(get_args(self.annotation))


def payload_kind_of(annotation: Any) -> PayloadKind:
    if annotation is None or annotation is type(None):
        return PayloadKind.NONE
    if get_origin(annotation) is tuple:
        args = get_args(annotation)
        if args and args[-1] is not Ellipsis:
            return PayloadKind.TUPLE
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return PayloadKind.NAMED
    return PayloadKind.SINGLE


def _strip_annotated(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    if get_origin(annotation) is Annotated:
        args = get_args(annotation)
        return args[0], tuple(args[1:])
    return annotation, ()


class _TaggedUnionMeta(type):
    def __getattr__(cls, name: str) -> Any:
        if name.startswith("_") or cls is TaggedUnion:
            raise AttributeError(name)
        specs = cls._variant_specs()
        if name not in specs:
            raise AttributeError(f"{cls.__name__} has no variant {name!r}")
        return functools.partial(cls._build, name)


class TaggedUnion(metaclass=_TaggedUnionMeta):
    """Base class for tagged unions; class annotations are the variants."""

    __slots__ = ("tag", "value")

    def __init__(self, tag: str, value: Any = None) -> None:
        specs = type(self)._variant_specs()
        if tag not in specs:
            raise ValueError(f"{type(self).__name__} has no variant {tag!r}")
        self.tag = tag
        self.value = value

    @classmethod
    def _variant_specs(cls) -> dict[str, VariantSpec]:
        cached = cls.__dict__.get(_SPECS_ATTR)
        if cached is not None:
            return cached
        if cls is TaggedUnion:
            raise TypeError("TaggedUnion must be subclassed")
        specs = _reflect_variants(cls)
        setattr(cls, _SPECS_ATTR, specs)
        return specs

    @classmethod
    def _invalidate_variants(cls) -> None:
        if _SPECS_ATTR in cls.__dict__:
            delattr(cls, _SPECS_ATTR)

    @classmethod
    def variant_names(cls) -> list[str]:
        return list(cls._variant_specs())

    @classmethod
    def _build(cls, tag: str, *args: Any, **kwargs: Any) -> "TaggedUnion":
        spec = cls._variant_specs()[tag]
        kind = spec.payload_kind
        if kind is PayloadKind.NONE:
            if args or kwargs:
                raise TypeError(f"{cls.__name__}.{tag} takes no payload")
            return cls(tag, None)
        if kind is PayloadKind.TUPLE:
            if kwargs:
                raise TypeError(f"{cls.__name__}.{tag} takes positional items only")
            return cls(tag, spec.adapter.validate_python(args))
        if kind is PayloadKind.NAMED:
            if args and not kwargs and len(args) == 1:
                return cls(tag, spec.adapter.validate_python(args[0]))
            if args:
                raise TypeError(f"{cls.__name__}.{tag} takes keyword fields or one model")
            return cls(tag, spec.adapter.validate_python(kwargs))
        if kwargs or len(args) != 1:
            raise TypeError(f"{cls.__name__}.{tag} takes exactly one value")
        return cls(tag, spec.adapter.validate_python(args[0]))

    @property
    def wire_name(self) -> str:
        return type(self)._variant_specs()[self.tag].wire_name

    def to_wire(self) -> dict[str, Any]:
        """Return the single-key JSON-compatible form."""

        spec = type(self)._variant_specs()[self.tag]
        if spec.payload_kind is PayloadKind.NONE:
            return {spec.wire_name: None}
        payload = spec.adapter.dump_python(self.value, mode="json", by_alias=True)
        return {spec.wire_name: payload}

    @classmethod
    def from_wire(cls, data: Any) -> "TaggedUnion":
        """Parse the single-key form produced by :meth:`to_wire`."""

        if not isinstance(data, dict):
            raise ValueError(
                f"{cls.__name__} expects a single-key object, got {type(data).__name__}"
            )
        if len(data) != 1:
            keys = ", ".join(repr(key) for key in data)
            raise ValueError(
                f"{cls.__name__} expects exactly one variant key, got [{keys}]"
            )
        wire_name, payload = next(iter(data.items()))
        for spec in cls._variant_specs().values():
            if spec.wire_name == wire_name:
                break
        else:
            allowed = ", ".join(s.wire_name for s in cls._variant_specs().values())
            raise ValueError(
                f"unknown {cls.__name__} variant {wire_name!r}; expected one of: {allowed}"
            )
        if spec.payload_kind is PayloadKind.NONE:
            if payload is not None:
                raise ValueError(f"variant {wire_name!r} carries no payload; use null")
            return cls(spec.name, None)
        return cls(spec.name, spec.adapter.validate_python(payload))

    @classmethod
    def _validate(cls, value: Any) -> "TaggedUnion":
        if isinstance(value, cls):
            return value
        return cls.from_wire(value)

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: Any) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda value: value.to_wire(),
                when_used="json",
            ),
        )

    @classmethod
    def __get_pydantic_json_schema__(cls, schema: Any, handler: Any) -> dict:
        from structor.core.schema import schema_for

        return schema_for(cls)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.tag == other.tag and self.value == other.value

    def __hash__(self) -> int:
        return hash((type(self).__name__, json.dumps(self.to_wire(), sort_keys=True)))

    def __repr__(self) -> str:
        name = f"{type(self).__name__}.{self.tag}"
        spec = type(self)._variant_specs()[self.tag]
        if spec.payload_kind is PayloadKind.NONE:
            return f"{name}()"
        if spec.payload_kind is PayloadKind.TUPLE:
            return f"{name}({', '.join(repr(item) for item in self.value)})"
        return f"{name}({self.value!r})"


def _reflect_variants(cls: type) -> dict[str, VariantSpec]:
    try:
        hints = typing.get_type_hints(cls, include_extras=True)
    except NameError as exc:
        raise SchemaDefinitionError(
            f"cannot resolve variant annotations: {exc}", path=cls.__name__
        ) from exc
    options = container_spec(cls)
    rule = options.rename_all if options is not None else None

    specs: dict[str, VariantSpec] = {}
    seen_wire: dict[str, str] = {}
    for name, annotation in hints.items():
        if name.startswith("_") or get_origin(annotation) is ClassVar or annotation is ClassVar:
            continue
        path = f"{cls.__name__}.{name}"
        if any(name in klass.__dict__ for klass in TaggedUnion.__mro__):
            raise SchemaDefinitionError(
                "variant name shadows a TaggedUnion attribute", path=path
            )
        inner, metadata = _strip_annotated(annotation)
        marker = find_llm_marker(metadata, path=path)
        if marker is not None and marker.examples:
            raise SchemaDefinitionError(
                "variants accept only description and rename", path=path
            )
        if marker is not None and marker.rename:
            wire_name = marker.rename
        elif rule is not None:
            wire_name = rule.apply(name)
        else:
            wire_name = name
        if wire_name in seen_wire:
            raise SchemaDefinitionError(
                f"wire name {wire_name!r} is used by both {seen_wire[wire_name]} and {name}",
                path=path,
            )
        seen_wire[wire_name] = name
        payload = None if inner is type(None) else inner
        specs[name] = VariantSpec(
            name=name,
            wire_name=wire_name,
            payload_kind=payload_kind_of(payload),
            annotation=payload,
            marker=marker,
        )
    if not specs:
        raise SchemaDefinitionError("tagged union declares no variants", path=cls.__name__)
    return specs
