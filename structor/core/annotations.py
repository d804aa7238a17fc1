"""Annotation markers and their normalization.

Three surface syntaxes feed the same normalized records:

* ``llm(...)`` markers inside ``typing.Annotated`` (fields and variants),
* pydantic's own ``Field(description=..., examples=...)``,
* the ``@container(...)`` class decorator for records and tagged unions.

Everything is checked when a shape is first described; malformed
combinations raise :class:`SchemaDefinitionError`.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, TypeAdapter, ValidationError

from structor.core.descriptor import (
    ContainerAnnotations,
    FieldAnnotations,
    TypeKind,
    TypeRef,
    fill_missing_optionals,
)
from structor.core.errors import SchemaDefinitionError
from structor.core.naming import RenameRule


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()

CONTAINER_ATTR = "__llm_container__"


def _normalize_examples(example: Any, examples: Any, *, where: str) -> tuple[Any, ...]:
    if example is not UNSET and examples is not None:
        raise SchemaDefinitionError(
            f"{where}: give either example= or examples=, not both"
        )
    if example is not UNSET:
        return (example,)
    if examples is None:
        return ()
    if isinstance(examples, (list, tuple)):
        return tuple(examples)
    raise SchemaDefinitionError(
        f"{where}: examples must be a list or tuple, got {type(examples).__name__}"
    )


def _check_description(description: Any, *, where: str) -> str | None:
    if description is None:
        return None
    if not isinstance(description, str):
        raise SchemaDefinitionError(
            f"{where}: description must be plain text, got {type(description).__name__}"
        )
    return description


@dataclass(frozen=True, eq=False)
class LLMAnnotation:
    """Field or variant marker produced by :func:`llm`."""

    description: str | None = None
    examples: tuple[Any, ...] = ()
    rename: str | None = None


def llm(
    description: str | None = None,
    *,
    example: Any = UNSET,
    examples: list | tuple | None = None,
    rename: str | None = None,
) -> LLMAnnotation:
    """Annotate a record field or tagged-union variant.

    ``example`` is the single-value form of ``examples``; a tuple and a list
    of examples mean the same thing.
    """

    description = _check_description(description, where="llm()")
    normalized = _normalize_examples(example, examples, where="llm()")
    if rename is not None and (not isinstance(rename, str) or not rename):
        raise SchemaDefinitionError("llm(): rename must be a non-empty string")
    return LLMAnnotation(description=description, examples=normalized, rename=rename)


@dataclass(frozen=True, eq=False)
class ContainerSpec:
    """Raw container options recorded by :func:`container`."""

    description: str | None = None
    title: str | None = None
    examples: tuple[Any, ...] = ()
    validator: Callable[[Any], Any] | str | None = None
    rename_all: RenameRule | None = None


def container(
    *,
    description: str | None = None,
    title: str | None = None,
    example: Any = UNSET,
    examples: list | tuple | None = None,
    validator: Callable[[Any], Any] | str | None = None,
    rename_all: RenameRule | str | None = None,
) -> Callable[[type], type]:
    """Class decorator attaching container annotations to a record or union.

    ``validator`` is either a callable taking the instance or the name of a
    method on the class. Records rename their fields through pydantic's
    ``alias_generator``; ``rename_all`` is for tagged unions only.
    """

    description = _check_description(description, where="container()")
    if title is not None and not isinstance(title, str):
        raise SchemaDefinitionError("container(): title must be a string")
    normalized = _normalize_examples(example, examples, where="container()")
    try:
        rule = RenameRule.parse(rename_all)
    except ValueError as exc:
        raise SchemaDefinitionError(f"container(): {exc}") from exc

    def decorate(cls: type) -> type:
        where = f"@container on {cls.__name__}"
        if rule is not None and issubclass(cls, BaseModel):
            raise SchemaDefinitionError(
                f"{where}: rename_all is for tagged unions; set "
                "model_config alias_generator on records instead"
            )
        if isinstance(validator, str):
            target = getattr(cls, validator, None)
            if target is None or not callable(target):
                raise SchemaDefinitionError(
                    f"{where}: validator {validator!r} is not a method of {cls.__name__}"
                )
        elif validator is not None and not callable(validator):
            raise SchemaDefinitionError(f"{where}: validator must be callable or a method name")
        spec = ContainerSpec(
            description=description,
            title=title,
            examples=normalized,
            validator=validator,
            rename_all=rule,
        )
        setattr(cls, CONTAINER_ATTR, spec)
        invalidate = getattr(cls, "_invalidate_variants", None)
        if invalidate is not None:
            invalidate()
        return cls

    return decorate


def container_spec(cls: Any) -> ContainerSpec | None:
    """Return the container options declared directly on ``cls``."""

    if not isinstance(cls, type):
        return None
    return cls.__dict__.get(CONTAINER_ATTR)


def find_llm_marker(metadata: Any, *, path: str) -> LLMAnnotation | None:
    """Return the single ``llm()`` marker among ``metadata``."""

    markers = [item for item in metadata if isinstance(item, LLMAnnotation)]
    if len(markers) > 1:
        raise SchemaDefinitionError("more than one llm() marker", path=path)
    return markers[0] if markers else None


def class_description(cls: type, spec: ContainerSpec | None) -> str | None:
    if spec is not None and spec.description is not None:
        return spec.description
    doc = cls.__dict__.get("__doc__")
    if isinstance(doc, str) and doc.strip():
        return inspect.cleandoc(doc)
    return None


def field_annotations(
    type_ref: TypeRef,
    marker: LLMAnnotation | None,
    *,
    field_description: str | None,
    field_examples: Any,
    path: str,
) -> FieldAnnotations:
    """Merge an ``llm()`` marker with pydantic ``Field`` metadata."""

    description = field_description
    if marker is not None and marker.description is not None:
        if field_description is not None and field_description != marker.description:
            raise SchemaDefinitionError(
                "conflicting descriptions in llm() and Field()", path=path
            )
        description = marker.description

    raw_examples: tuple[Any, ...] = ()
    if marker is not None and marker.examples:
        raw_examples = marker.examples
    if field_examples:
        if raw_examples:
            raise SchemaDefinitionError(
                "examples given in both llm() and Field()", path=path
            )
        raw_examples = tuple(field_examples)

    coerced = tuple(coerce_example(type_ref, value, path=path) for value in raw_examples)
    return FieldAnnotations(description=description, examples=coerced)


def container_annotations(
    cls: type,
    type_ref: TypeRef,
    *,
    default_title: str | None = None,
) -> ContainerAnnotations:
    """Normalize the container options of ``cls`` against its own type-ref."""

    spec = container_spec(cls)
    title = spec.title if spec is not None and spec.title else default_title or cls.__name__
    examples: tuple[Any, ...] = ()
    if spec is not None:
        examples = tuple(
            coerce_example(type_ref, value, path=cls.__name__) for value in spec.examples
        )
    return ContainerAnnotations(
        description=class_description(cls, spec),
        title=title,
        examples=examples,
        validator=spec.validator if spec is not None else None,
        rename_all=spec.rename_all if spec is not None else None,
    )


def _kind_error(ref: TypeRef, value: Any, path: str) -> SchemaDefinitionError:
    return SchemaDefinitionError(
        f"example {value!r} does not match declared type {ref.kind.value}",
        path=path,
    )


def coerce_example(ref: TypeRef, value: Any, *, path: str) -> Any:
    """Coerce one example value to the declared type, or fail.

    A numeric literal against a string type becomes its string form; that
    is the only lossy coercion allowed.
    """

    kind = ref.kind
    if kind is TypeKind.OPTIONAL:
        if value is None:
            return None
        return coerce_example(ref.item, value, path=path)
    if kind is TypeKind.STRING:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise _kind_error(ref, value, path)
    if kind is TypeKind.INTEGER:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise _kind_error(ref, value, path)
    if kind is TypeKind.NUMBER:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        raise _kind_error(ref, value, path)
    if kind is TypeKind.BOOLEAN:
        if isinstance(value, bool):
            return value
        raise _kind_error(ref, value, path)
    if kind is TypeKind.ARRAY:
        if isinstance(value, (list, tuple)):
            return [coerce_example(ref.item, item, path=f"{path}[]") for item in value]
        raise _kind_error(ref, value, path)
    if kind is TypeKind.MAP:
        if isinstance(value, dict) and all(isinstance(key, str) for key in value):
            return {
                key: coerce_example(ref.item, item, path=f"{path}.{key}")
                for key, item in value.items()
            }
        raise _kind_error(ref, value, path)
    if kind is TypeKind.ENUM:
        if isinstance(value, Enum):
            value = value.value
        if value in ref.enum_values:
            return value
        raise SchemaDefinitionError(
            f"example {value!r} is not one of {list(ref.enum_values)!r}", path=path
        )
    if kind is TypeKind.CUSTOM:
        isoformat = getattr(value, "isoformat", None)
        if callable(isoformat):
            return isoformat()
        if isinstance(value, (str, int, float, bool)) or value is None:
            return value
        return str(value)
    if kind in (TypeKind.RECORD, TypeKind.UNION):
        return _coerce_structured(ref, value, path)
    raise _kind_error(ref, value, path)


def _coerce_structured(ref: TypeRef, value: Any, path: str) -> Any:
    py_type = ref.py_type
    if py_type is None:
        if isinstance(value, dict):
            return value
        raise _kind_error(ref, value, path)
    adapter = TypeAdapter(py_type)
    if not isinstance(value, py_type):
        try:
            value = adapter.validate_python(fill_missing_optionals(ref, value))
        except ValidationError as exc:
            raise SchemaDefinitionError(
                f"example does not validate as {py_type.__name__}: {exc.error_count()} error(s); "
                f"first: {exc.errors()[0]['msg']}",
                path=path,
            ) from exc
    return adapter.dump_python(value, mode="json", by_alias=True)
