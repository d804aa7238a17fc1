"""Tests for runtime reflection into Type Descriptors."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal, Optional

import pytest
from pydantic import BaseModel, ConfigDict, Field

from structor.core.descriptor import PayloadKind, TypeKind
from structor.core.errors import SchemaDefinitionError
from structor.core.naming import RenameRule
from structor.core.reflect import describe
from structor.core.tagged import TaggedUnion


class Node(BaseModel):
    value: int
    children: list[Node]


class TreeA(BaseModel):
    b: Optional[TreeB] = None


class TreeB(BaseModel):
    a: Optional[TreeA] = None


TreeA.model_rebuild()


class Point(BaseModel):
    x: float
    y: float


class Segment(BaseModel):
    start: Point
    end: Point


class Release(BaseModel):
    model_config = ConfigDict(alias_generator=RenameRule.CAMEL_CASE, populate_by_name=True)

    release_year: int
    film_title: str = Field(alias="title")


class Shape(TaggedUnion):
    Empty: None
    Circle: float
    Rect: tuple[float, float]
    Moved: Point


def test_primitive_kinds_and_bool_is_not_integer() -> None:
    assert describe(str).kind is TypeKind.STRING
    assert describe(int).kind is TypeKind.INTEGER
    assert describe(float).kind is TypeKind.NUMBER
    assert describe(bool).kind is TypeKind.BOOLEAN


@pytest.mark.parametrize(
    "tp",
    [list[int], set[int], frozenset[int], Sequence[int], tuple[int, ...]],
)
def test_collections_become_arrays(tp: object) -> None:
    ref = describe(tp)

    assert ref.kind is TypeKind.ARRAY
    assert ref.item.kind is TypeKind.INTEGER


def test_optional_and_map_and_literal() -> None:
    assert describe(Optional[int]).kind is TypeKind.OPTIONAL
    assert describe(int | None).item.kind is TypeKind.INTEGER

    mapping = describe(dict[str, float])
    assert mapping.kind is TypeKind.MAP
    assert mapping.item.kind is TypeKind.NUMBER

    literal = describe(Literal["a", "b"])
    assert literal.kind is TypeKind.ENUM
    assert literal.enum_values == ("a", "b")


def test_record_fields_keep_declaration_order_and_wire_names() -> None:
    ref = describe(Release)

    assert ref.kind is TypeKind.RECORD
    assert [(fd.name, fd.wire_name) for fd in ref.record.fields] == [
        ("release_year", "releaseYear"),
        ("film_title", "title"),
    ]


def test_describe_is_cached_per_type() -> None:
    assert describe(Segment) is describe(Segment)


def test_shared_nested_record_is_not_a_cycle() -> None:
    ref = describe(Segment)

    start, end = ref.record.fields
    assert start.type_ref == end.type_ref


def test_self_reference_is_reported_as_cycle() -> None:
    with pytest.raises(SchemaDefinitionError) as excinfo:
        describe(Node)

    assert "Node -> Node" in str(excinfo.value)


def test_mutual_reference_is_reported_with_chain() -> None:
    with pytest.raises(SchemaDefinitionError) as excinfo:
        describe(TreeA)

    assert "TreeA -> TreeB -> TreeA" in str(excinfo.value)


def test_union_variants_have_payload_kinds() -> None:
    ref = describe(Shape)

    assert ref.kind is TypeKind.UNION
    kinds = [(v.name, v.payload_kind) for v in ref.union.variants]
    assert kinds == [
        ("Empty", PayloadKind.NONE),
        ("Circle", PayloadKind.SINGLE),
        ("Rect", PayloadKind.TUPLE),
        ("Moved", PayloadKind.NAMED),
    ]
    rect = ref.union.variants[2]
    assert [item.kind for item in rect.payload] == [TypeKind.NUMBER, TypeKind.NUMBER]
    assert ref.union.variants[0].description == "Variant Empty"


def test_unsupported_union_reports_field_path() -> None:
    class Ambiguous(BaseModel):
        value: int | str

    with pytest.raises(SchemaDefinitionError) as excinfo:
        describe(Ambiguous)

    assert "Ambiguous.value" in str(excinfo.value)
    assert "TaggedUnion" in str(excinfo.value)


def test_non_string_map_keys_are_rejected() -> None:
    class Lookup(BaseModel):
        table: dict[int, str]

    with pytest.raises(SchemaDefinitionError) as excinfo:
        describe(Lookup)

    assert "Lookup.table" in str(excinfo.value)


def test_mixed_literal_values_are_rejected() -> None:
    with pytest.raises(SchemaDefinitionError):
        describe(Literal["a", 1])
