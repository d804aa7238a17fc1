"""Build Type Descriptors from Python types by runtime reflection."""

from __future__ import annotations

import collections.abc
import types
from dataclasses import replace
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel

from structor.core.annotations import (
    container_annotations,
    field_annotations,
    find_llm_marker,
)
from structor.core.custom_types import DEFAULT_REGISTRY, CustomTypeRegistry
from structor.core.descriptor import (
    FieldDescriptor,
    PayloadKind,
    RecordDescriptor,
    TypeKind,
    TypeRef,
    UnionDescriptor,
    VariantDescriptor,
)
from structor.core.errors import SchemaDefinitionError
from structor.core.tagged import TaggedUnion

_ARRAY_ORIGINS = (
    list,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
)
_MAP_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


def type_name(tp: Any) -> str:
    if isinstance(tp, type):
        return tp.__name__
    return repr(tp).replace("typing.", "")


def enum_value_kind(values: tuple[Any, ...]) -> TypeKind:
    """Return the primitive kind shared by every enum value."""

    if values and all(isinstance(v, str) for v in values):
        return TypeKind.STRING
    if values and all(isinstance(v, bool) for v in values):
        return TypeKind.BOOLEAN
    if values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return TypeKind.INTEGER
    if values and all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in values
    ):
        return TypeKind.NUMBER
    raise ValueError(f"enum values must share one primitive type: {list(values)!r}")


class _Reflector:
    def __init__(self, registry: CustomTypeRegistry) -> None:
        self.registry = registry
        self._stack: list[type] = []
        self._done: dict[type, TypeRef] = {}

    def ref(self, tp: Any, path: str) -> TypeRef:
        if get_origin(tp) is Annotated:
            tp = get_args(tp)[0]

        custom = self.registry.lookup(tp)
        if custom is not None:
            return TypeRef.of_custom(custom, tp)

        if tp is bool:
            return TypeRef.primitive(TypeKind.BOOLEAN)
        if tp is str:
            return TypeRef.primitive(TypeKind.STRING)
        if tp is int:
            return TypeRef.primitive(TypeKind.INTEGER)
        if tp is float:
            return TypeRef.primitive(TypeKind.NUMBER)

        origin = get_origin(tp)
        args = get_args(tp)
        if origin is Union or origin is types.UnionType:
            members = [arg for arg in args if arg is not type(None)]
            if len(members) == 1 and len(args) == 2:
                return TypeRef.optional_of(self.ref(members[0], path))
            raise SchemaDefinitionError(
                f"unsupported type {type_name(tp)}: only T | None unions are "
                "allowed; declare a TaggedUnion for alternatives",
                path=path,
            )
        if origin is Literal:
            return self._enum(args, None, tp, path)
        if origin in _ARRAY_ORIGINS and len(args) == 1:
            return TypeRef.array_of(self.ref(args[0], f"{path}[]"))
        if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
            return TypeRef.array_of(self.ref(args[0], f"{path}[]"))
        if origin in _MAP_ORIGINS and len(args) == 2:
            if args[0] is not str:
                raise SchemaDefinitionError(
                    f"unsupported map key type {type_name(args[0])}; keys must be str",
                    path=path,
                )
            return TypeRef.map_of(self.ref(args[1], f"{path}{{}}"))

        if isinstance(tp, type):
            if issubclass(tp, Enum):
                values = tuple(member.value for member in tp)
                return self._enum(values, tp.__name__, tp, path)
            if issubclass(tp, BaseModel):
                return self.record(tp)
            if issubclass(tp, TaggedUnion) and tp is not TaggedUnion:
                return self.union(tp)

        raise SchemaDefinitionError(f"unsupported type {type_name(tp)}", path=path)

    def _enum(self, values: tuple[Any, ...], title: str | None, tp: Any, path: str) -> TypeRef:
        try:
            enum_value_kind(values)
        except ValueError as exc:
            raise SchemaDefinitionError(str(exc), path=path) from exc
        return TypeRef(kind=TypeKind.ENUM, enum_values=values, title=title, py_type=tp)

    def _enter(self, cls: type) -> TypeRef | None:
        if cls in self._stack:
            chain = self._stack[self._stack.index(cls):] + [cls]
            raise SchemaDefinitionError(
                "cyclic type reference " + " -> ".join(c.__name__ for c in chain),
                path=self._stack[0].__name__,
            )
        return self._done.get(cls)

    def record(self, cls: type[BaseModel]) -> TypeRef:
        done = self._enter(cls)
        if done is not None:
            return done
        if not getattr(cls, "__pydantic_complete__", True):
            cls.model_rebuild()
        self._stack.append(cls)
        try:
            fields = tuple(self._field(cls, name, info) for name, info in cls.model_fields.items())
        finally:
            self._stack.pop()

        bare = RecordDescriptor(name=cls.__name__, fields=fields, py_type=cls)
        config_title = cls.model_config.get("title")
        annotations = container_annotations(
            cls, TypeRef.of_record(bare), default_title=config_title
        )
        ref = TypeRef.of_record(replace(bare, annotations=annotations))
        self._done[cls] = ref
        return ref

    def _field(self, cls: type[BaseModel], name: str, info: Any) -> FieldDescriptor:
        path = f"{cls.__name__}.{name}"
        marker = find_llm_marker(info.metadata, path=path)
        if marker is not None and marker.rename:
            raise SchemaDefinitionError(
                "llm(rename=...) applies to variants; rename record fields "
                "with Field(alias=...)",
                path=path,
            )
        type_ref = self.ref(info.annotation, path)
        annotations = field_annotations(
            type_ref,
            marker,
            field_description=info.description,
            field_examples=info.examples,
            path=path,
        )
        return FieldDescriptor(
            name=name,
            wire_name=info.alias or name,
            type_ref=type_ref,
            annotations=annotations,
            has_default=not info.is_required(),
        )

    def union(self, cls: type[TaggedUnion]) -> TypeRef:
        done = self._enter(cls)
        if done is not None:
            return done
        self._stack.append(cls)
        try:
            variants = tuple(
                self._variant(cls, spec) for spec in cls._variant_specs().values()
            )
        finally:
            self._stack.pop()

        bare = UnionDescriptor(name=cls.__name__, variants=variants, py_type=cls)
        annotations = container_annotations(cls, TypeRef.of_union(bare))
        ref = TypeRef.of_union(replace(bare, annotations=annotations))
        self._done[cls] = ref
        return ref

    def _variant(self, cls: type, spec: Any) -> VariantDescriptor:
        path = f"{cls.__name__}.{spec.name}"
        kind = spec.payload_kind
        if kind is PayloadKind.NONE:
            payload: tuple[TypeRef, ...] = ()
        elif kind is PayloadKind.TUPLE:
            payload = tuple(
                self.ref(item, f"{path}[{idx}]")
                for idx, item in enumerate(get_args(spec.annotation))
            )
        elif kind is PayloadKind.NAMED:
            payload = (self.record(spec.annotation),)
        else:
            payload = (self.ref(spec.annotation, path),)
        marker = spec.marker
        description = marker.description if marker is not None else None
        return VariantDescriptor(
            name=spec.name,
            wire_name=spec.wire_name,
            payload_kind=kind,
            payload=payload,
            description=description or f"Variant {spec.wire_name}",
        )


@lru_cache(maxsize=None)
def _describe_cached(tp: Any) -> TypeRef:
    return _Reflector(DEFAULT_REGISTRY).ref(tp, type_name(tp))


def describe(tp: Any, *, registry: CustomTypeRegistry | None = None) -> TypeRef:
    """Return the Type Descriptor for ``tp``.

    Results against the default registry are cached for the process
    lifetime; the cache is dropped whenever a custom type is registered.
    """

    if registry is not None and registry is not DEFAULT_REGISTRY:
        return _Reflector(registry).ref(tp, type_name(tp))
    try:
        hash(tp)
    except TypeError:
        return _Reflector(DEFAULT_REGISTRY).ref(tp, type_name(tp))
    return _describe_cached(tp)


def clear_cache() -> None:
    _describe_cached.cache_clear()


DEFAULT_REGISTRY.on_change(clear_cache)
