"""Case-conversion rules for wire property and variant names."""

from __future__ import annotations

import re
from enum import Enum

_SEPARATORS = re.compile(r"[_\-\s]+")
_WORD = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z0-9]+|[0-9]+")


def split_words(name: str) -> list[str]:
    """Split an identifier in any common casing into its words."""

    words: list[str] = []
    for chunk in _SEPARATORS.split(name):
        if chunk:
            words.extend(_WORD.findall(chunk))
    return words


class RenameRule(str, Enum):
    """Container-level renaming selector.

    Members are callable so a rule can be passed straight to pydantic as
    ``ConfigDict(alias_generator=RenameRule.CAMEL_CASE)``.
    """

    NONE = "none"
    LOWERCASE = "lowercase"
    UPPERCASE = "UPPERCASE"
    CAMEL_CASE = "camelCase"
    PASCAL_CASE = "PascalCase"
    SNAKE_CASE = "snake_case"
    SCREAMING_SNAKE_CASE = "SCREAMING_SNAKE_CASE"
    KEBAB_CASE = "kebab-case"
    SCREAMING_KEBAB_CASE = "SCREAMING-KEBAB-CASE"

    def __call__(self, name: str) -> str:
        return self.apply(name)

    def apply(self, name: str) -> str:
        """Return ``name`` converted according to this rule."""

        if self is RenameRule.NONE:
            return name
        if self is RenameRule.LOWERCASE:
            return name.lower()
        if self is RenameRule.UPPERCASE:
            return name.upper()

        words = split_words(name)
        if not words:
            return name
        if self is RenameRule.CAMEL_CASE:
            return words[0].lower() + "".join(w.capitalize() for w in words[1:])
        if self is RenameRule.PASCAL_CASE:
            return "".join(w.capitalize() for w in words)
        if self is RenameRule.SNAKE_CASE:
            return "_".join(w.lower() for w in words)
        if self is RenameRule.SCREAMING_SNAKE_CASE:
            return "_".join(w.upper() for w in words)
        if self is RenameRule.KEBAB_CASE:
            return "-".join(w.lower() for w in words)
        return "-".join(w.upper() for w in words)

    @classmethod
    def parse(cls, value: "RenameRule | str | None") -> "RenameRule | None":
        """Accept a rule, its string value, or a member name."""

        if value is None or isinstance(value, RenameRule):
            return value
        for rule in cls:
            if value == rule.value or value.upper() == rule.name:
                return rule
        allowed = ", ".join(rule.value for rule in cls)
        raise ValueError(f"Unknown rename rule {value!r}. Allowed: {allowed}")
