from __future__ import annotations

from typing import Any

import jsonschema

from ..errors import RecipeError


class ArgumentValidationError(RecipeError):
    exit_code = 6

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def is_json_schema(schema: Any) -> bool:
    return isinstance(schema, dict) and isinstance(schema.get("properties"), dict)


def validate_arguments(schema: dict[str, Any], arguments: dict[str, Any], action: str = "") -> None:
    """
    Check collected arguments against a JSON-Schema style argument schema.

    Non-standard keywords the APIs add (``label``, ``options``, ``notes``)
    are ignored by the validator.

    Raises:
        ArgumentValidationError: One entry per violation, ``path: message``
    """
    if not is_json_schema(schema):
        return
    checked = {k: v for k, v in schema.items() if k != "notes"}
    checked.setdefault("type", "object")
    validator_cls = jsonschema.validators.validator_for(checked)
    validator = validator_cls(checked)
    errors = sorted(validator.iter_errors(arguments), key=lambda e: [str(p) for p in e.path])
    if errors:
        formatted = [_format_error(err) for err in errors]
        target = f" for {action}" if action else ""
        raise ArgumentValidationError(f"Argument validation failed{target}.", errors=formatted)


def _format_error(error: jsonschema.ValidationError) -> str:
    location = "/".join(str(part) for part in error.path) or "<root>"
    return f"{location}: {error.message}"
