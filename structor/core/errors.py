"""Error types raised while describing shapes and checking responses."""

from __future__ import annotations


class SchemaDefinitionError(ValueError):
    """A declared shape or its annotations cannot be turned into a schema.

    Raised at describe time (unsupported type, cyclic reference, malformed
    annotation). Never retried.
    """

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class StructuralParseError(ValueError):
    """Raw response text does not deserialize into the declared shape."""

    def __init__(self, message: str, *, fragment: str | None = None) -> None:
        self.message = message
        self.fragment = fragment
        super().__init__(message)


class SemanticValidationError(ValueError):
    """A parsed instance was rejected by its semantic validator."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
