"""Tests for annotation normalization and example coercion."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

import pytest
from pydantic import BaseModel, Field

from structor.core.annotations import container, llm
from structor.core.errors import SchemaDefinitionError
from structor.core.reflect import describe
from structor.core.schema import schema_for
from structor.core.tagged import TaggedUnion


class Genre(str, Enum):
    DRAMA = "drama"
    COMEDY = "comedy"


class TupleExamples(BaseModel):
    tags: Annotated[list[str], llm(examples=(["a", "b"], ["c"]))]


class ListExamples(BaseModel):
    tags: Annotated[list[str], llm(examples=[["a", "b"], ["c"]])]


class Coerced(BaseModel):
    code: Annotated[str, llm("Numeric code", example=42)]
    ratio: Annotated[float, llm(example=3)]
    when: Annotated[datetime, llm(example=datetime(2024, 1, 2, 3, 4, 5))]
    genre: Annotated[Genre, llm(example=Genre.DRAMA)]
    nickname: Annotated[Optional[str], llm(examples=[None, "Bob"])] = None


class FieldMetadata(BaseModel):
    title: str = Field(description="Film title", examples=["Heat", "Ronin"])
    same: Annotated[str, llm("Same text"), Field(description="Same text")]


@container(
    description="A feature film",
    title="Film",
    example={"title": "Heat", "year": 1995},
)
class ExampleFilm(BaseModel):
    """Docstring that the explicit description replaces."""

    title: str
    year: int
    rating: Optional[float]


class Documented(BaseModel):
    """A record described by its docstring.

    Second paragraph.
    """

    value: int


class BadVariantExamples(TaggedUnion):
    Count: Annotated[int, llm(example=1)]


def test_llm_rejects_example_and_examples_together() -> None:
    with pytest.raises(SchemaDefinitionError):
        llm(example=1, examples=[2])


def test_llm_requires_plain_text_description() -> None:
    with pytest.raises(SchemaDefinitionError):
        llm({"text": "structured"})  # type: ignore[arg-type]


def test_tuple_and_list_examples_are_equivalent() -> None:
    tuple_schema = schema_for(TupleExamples)["properties"]["tags"]
    list_schema = schema_for(ListExamples)["properties"]["tags"]

    assert tuple_schema == list_schema
    assert tuple_schema["examples"] == [["a", "b"], ["c"]]


def test_examples_are_coerced_to_declared_types() -> None:
    props = schema_for(Coerced)["properties"]

    assert props["code"]["description"] == "Numeric code"
    assert props["code"]["examples"] == ["42"]
    assert props["ratio"]["examples"] == [3]
    assert props["when"]["examples"] == ["2024-01-02T03:04:05"]
    assert props["genre"]["examples"] == ["drama"]
    assert props["nickname"]["examples"] == [None, "Bob"]


def test_boolean_example_against_integer_is_rejected() -> None:
    class Counter(BaseModel):
        count: Annotated[int, llm(example=True)]

    with pytest.raises(SchemaDefinitionError) as excinfo:
        describe(Counter)

    assert "Counter.count" in str(excinfo.value)


def test_array_example_against_string_is_rejected() -> None:
    class Label(BaseModel):
        text: Annotated[str, llm(example=["a"])]

    with pytest.raises(SchemaDefinitionError):
        describe(Label)


def test_pydantic_field_metadata_is_used() -> None:
    props = schema_for(FieldMetadata)["properties"]

    assert props["title"] == {
        "type": "string",
        "description": "Film title",
        "examples": ["Heat", "Ronin"],
    }
    assert props["same"]["description"] == "Same text"


def test_conflicting_descriptions_are_rejected() -> None:
    class Conflict(BaseModel):
        name: Annotated[str, llm("one"), Field(description="two")]

    with pytest.raises(SchemaDefinitionError) as excinfo:
        describe(Conflict)

    assert "conflicting descriptions" in str(excinfo.value)


def test_examples_in_llm_and_field_are_rejected() -> None:
    class Doubled(BaseModel):
        name: Annotated[str, llm(example="a"), Field(examples=["b"])]

    with pytest.raises(SchemaDefinitionError):
        describe(Doubled)


def test_container_annotations_override_defaults() -> None:
    schema = schema_for(ExampleFilm)

    assert schema["title"] == "Film"
    assert schema["description"] == "A feature film"
    assert schema["examples"] == [{"title": "Heat", "year": 1995, "rating": None}]


def test_docstring_is_default_description() -> None:
    schema = schema_for(Documented)

    assert schema["title"] == "Documented"
    assert schema["description"] == "A record described by its docstring.\n\nSecond paragraph."


def test_invalid_container_example_is_rejected() -> None:
    @container(example={"title": "Heat"})
    class MissingYear(BaseModel):
        title: str
        year: int

    with pytest.raises(SchemaDefinitionError) as excinfo:
        describe(MissingYear)

    assert "MissingYear" in str(excinfo.value)


def test_rename_all_on_record_is_rejected() -> None:
    with pytest.raises(SchemaDefinitionError) as excinfo:

        @container(rename_all="camelCase")
        class Renamed(BaseModel):
            some_field: int

    assert "alias_generator" in str(excinfo.value)


def test_unknown_validator_method_is_rejected() -> None:
    with pytest.raises(SchemaDefinitionError):

        @container(validator="does_not_exist")
        class Checked(BaseModel):
            value: int


def test_unknown_rename_rule_is_rejected() -> None:
    with pytest.raises(SchemaDefinitionError):
        container(rename_all="sPoNgEcAsE")


def test_variant_examples_are_rejected() -> None:
    with pytest.raises(SchemaDefinitionError) as excinfo:
        describe(BadVariantExamples)

    assert "BadVariantExamples.Count" in str(excinfo.value)


def test_llm_rename_on_record_field_is_rejected() -> None:
    class Renamed(BaseModel):
        value: Annotated[int, llm(rename="val")]

    with pytest.raises(SchemaDefinitionError) as excinfo:
        describe(Renamed)

    assert "Field(alias" in str(excinfo.value)
