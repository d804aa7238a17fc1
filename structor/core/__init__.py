"""Core schema derivation and validation functionality."""

from structor.core.annotations import container, llm
from structor.core.custom_types import (
    DEFAULT_REGISTRY,
    CustomTypeRegistry,
    CustomTypeSchema,
    register_custom_type,
)
from structor.core.errors import (
    SchemaDefinitionError,
    SemanticValidationError,
    StructuralParseError,
)
from structor.core.naming import RenameRule
from structor.core.reflect import describe
from structor.core.schema import generate_schema, schema_for, schema_to_text
from structor.core.tagged import TaggedUnion
from structor.core.validation import (
    check_semantics,
    parse_structured,
    serialize_instance,
    validate_response,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "CustomTypeRegistry",
    "CustomTypeSchema",
    "RenameRule",
    "SchemaDefinitionError",
    "SemanticValidationError",
    "StructuralParseError",
    "TaggedUnion",
    "check_semantics",
    "container",
    "describe",
    "generate_schema",
    "llm",
    "parse_structured",
    "register_custom_type",
    "schema_for",
    "schema_to_text",
    "serialize_instance",
    "validate_response",
]
