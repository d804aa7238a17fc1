"""Prompt templates for structured extraction."""

from __future__ import annotations

import json

from structor.extract.report import AttemptFailure, FailureKind

_INSTRUCTIONS = [
    "Output MUST be valid JSON only (no markdown, no prose).",
    "Output MUST conform to the JSON schema below.",
    "Include every property listed in \"required\"; optional properties may be omitted.",
    "For oneOf variants, output an object with exactly one key: the variant name.",
    "A variant without data is written as {\"VariantName\": null}.",
    "Do not invent values that are not supported by the input.",
]

_PREVIOUS_OUTPUT_LIMIT = 1500


def build_request_text(prompt: str, schema: dict | None, feedback: str | None) -> str:
    """Combine caller prompt, schema document and feedback into one text."""

    if schema is None:
        return prompt if not feedback else prompt + "\n\n" + feedback
    lines = [
        prompt,
        "",
        "INSTRUCTIONS:",
        *_INSTRUCTIONS,
        "",
        "JSON SCHEMA:",
        json.dumps(schema, indent=2, ensure_ascii=False),
    ]
    if feedback:
        lines.extend(["", feedback])
    return "\n".join(lines)


def _previous_output(raw: str | None) -> str:
    if raw is None:
        return "(none)"
    if len(raw) <= _PREVIOUS_OUTPUT_LIMIT:
        return raw
    return raw[:_PREVIOUS_OUTPUT_LIMIT] + "..."


def build_feedback(failure: AttemptFailure) -> str | None:
    """Feedback block describing one failed attempt.

    Backend failures carry nothing the model can correct, so they give None.
    """

    if failure.kind is FailureKind.STRUCTURAL_PARSE:
        lines = [
            f"PREVIOUS ATTEMPT {failure.attempt} FAILED: the response was not valid structured data.",
            f"Parse error: {failure.message}",
        ]
        if failure.fragment:
            lines.extend(["Offending fragment:", failure.fragment])
        lines.extend(
            [
                "Previous output:",
                _previous_output(failure.raw_response),
                "",
                "Return corrected JSON only, following the schema exactly.",
            ]
        )
        return "\n".join(lines)
    if failure.kind is FailureKind.SEMANTIC_VALIDATION:
        return "\n".join(
            [
                f"PREVIOUS ATTEMPT {failure.attempt} FAILED: the response violated a validation rule.",
                f"Rule violation: {failure.message}",
                "Previous output:",
                _previous_output(failure.raw_response),
                "",
                "Return corrected JSON only that satisfies the rule.",
            ]
        )
    return None
