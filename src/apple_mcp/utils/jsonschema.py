"""JSON Schema validation wrapper."""

from __future__ import annotations

from jsonschema import Draft202012Validator


def validate_payload(schema: dict[str, object], payload: dict[str, object]) -> list[str]:
    """Validate payload against schema and return error messages.

    Messages are prefixed with the dotted path of the offending field when
    there is one, and sorted so the output is stable.
    """
    validator = Draft202012Validator(schema)
    errors: list[str] = []
    for error in validator.iter_errors(payload):
        path = ".".join(str(p) for p in error.absolute_path)
        errors.append(f"{path}: {error.message}" if path else error.message)
    return sorted(errors)
