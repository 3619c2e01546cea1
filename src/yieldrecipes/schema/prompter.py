"""
Argument schema prompter.

Walks parsed schema fields and asks the user for each value, producing
the ``arguments`` mapping an action request expects. Per-run context
(which integration is selected, how to look up its validators) is passed
in explicitly through ``PromptContext``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

import click

from ..pneuma.models import Validator
from ..utils import format_apy
from .fields import (
    ArrayField,
    BoolField,
    EnumField,
    Field,
    NumberField,
    ObjectField,
    StringField,
    ValidatorRefField,
    parse_fields,
)
from .prompts import Choice, Prompter

logger = logging.getLogger(__name__)

_NONE = object()


@dataclass(frozen=True)
class PromptContext:
    """
    Per-run context for argument collection.

    Attributes:
        integration_id: Selected yield / integration / market id
        validator_lookup: ``integration_id -> validators`` used for
            validator-reference fields
    """

    integration_id: Optional[str] = None
    validator_lookup: Optional[Callable[[str], list[Validator]]] = None

    def validators(self) -> list[Validator]:
        if not self.integration_id or self.validator_lookup is None:
            return []
        return list(self.validator_lookup(self.integration_id))


def validator_label(validator: Validator) -> str:
    parts = [validator.display_name]
    if validator.reward_rate is not None:
        parts.append(f"- APY: {format_apy(validator.reward_rate)}")
    if validator.status:
        parts.append(f"({validator.status})")
    if validator.subnet_id is not None:
        parts.append(f"- Subnet: {validator.subnet_id}")
    return " ".join(parts)


# ============ Input validation ============


def parse_number(text: str, field: NumberField) -> Any:
    """
    Parse and bound-check numeric input.

    Raises:
        ValueError: With a user-facing message
    """
    try:
        value = float(text)
    except ValueError:
        raise ValueError("Must be a valid number")
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError("Must be a valid number")
    if field.integer and not value.is_integer():
        raise ValueError("Must be an integer")
    if field.minimum is not None and value < field.minimum:
        raise ValueError(f"Must be at least {_trim(field.minimum)}")
    if field.maximum is not None and value > field.maximum:
        raise ValueError(f"Must be at most {_trim(field.maximum)}")
    if field.as_string:
        return text
    return int(value) if field.integer else value


def parse_array(text: str) -> list[Any]:
    """Comma-separated list, or a JSON array when the input starts with '['."""
    if text.startswith("["):
        try:
            value = json.loads(text)
        except json.JSONDecodeError:
            raise ValueError("Invalid JSON array")
        if not isinstance(value, list):
            raise ValueError("Invalid JSON array")
        return value
    return [part.strip() for part in text.split(",") if part.strip()]


def _trim(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _blank_check(field: Field, text: str) -> Optional[str]:
    if text == "" and field.required:
        return f"{field.title} is required"
    return None


# ============ Prompter ============


class SchemaPrompter:
    """Interprets parsed fields against a ``Prompter``."""

    def __init__(self, prompter: Prompter) -> None:
        self.prompter = prompter

    def collect(
        self,
        schema: Any,
        context: Optional[PromptContext] = None,
        skip: Iterable[str] = (),
    ) -> dict[str, Any]:
        """
        Ask for every field of ``schema`` and return the collected arguments.

        Args:
            schema: Raw schema in any supported shape, or parsed fields
            context: Integration context for validator lookups
            skip: Field names already filled in by the caller

        Returns:
            Mapping of field name to value; optional fields left blank are absent
        """
        context = context or PromptContext()
        skipped = set(skip)
        result: dict[str, Any] = {}
        for field in parse_fields(schema):
            if field.name in skipped:
                continue
            if not field.required and field.has_default:
                result[field.name] = field.default
                continue
            value = self._ask(field, context, result)
            if value is not _NONE:
                result[field.name] = value
        return result

    def _ask(self, field: Field, context: PromptContext, result: dict[str, Any]) -> Any:
        if isinstance(field, ValidatorRefField):
            picked = self._ask_validator(field, context, result)
            if picked is not None:
                return picked
            text = self._ask_string(field)
            if field.many and text is not _NONE:
                return [text]
            return text
        if isinstance(field, EnumField):
            return self._ask_enum(field)
        if isinstance(field, NumberField):
            return self._ask_number(field)
        if isinstance(field, BoolField):
            return self.prompter.confirm(field.message, default=bool(field.default))
        if isinstance(field, ArrayField):
            return self._ask_array(field)
        if isinstance(field, ObjectField):
            click.echo(f"\n{field.title}:")
            nested = self.collect(field.fields, context)
            return nested if nested else _NONE
        return self._ask_string(field)

    def _ask_validator(
        self,
        field: ValidatorRefField,
        context: PromptContext,
        result: dict[str, Any],
    ) -> Any:
        validators = context.validators()
        if not validators:
            logger.debug("no validators for %s; falling back to text input", context.integration_id)
            return None
        choices = [Choice(validator_label(v), v) for v in validators]
        if not field.required:
            choices.append(Choice("None", _NONE))
        picked = self.prompter.autocomplete(field.message, choices)
        if picked is _NONE:
            return _NONE
        if picked.subnet_id is not None:
            result["subnetId"] = picked.subnet_id
        return [picked.address] if field.many else picked.address

    def _ask_enum(self, field: EnumField) -> Any:
        choices = list(field.choices)
        if not field.required:
            choices.append(Choice("None", _NONE))
        return self.prompter.select(field.message, choices)

    def _ask_number(self, field: NumberField) -> Any:
        def validate(text: str) -> Optional[str]:
            if text == "":
                return _blank_check(field, text)
            try:
                parse_number(text, field)
            except ValueError as exc:
                return str(exc)
            return None

        default = None if field.default is None else str(field.default)
        text = self.prompter.text(field.message, default=default, validate=validate)
        if text == "":
            return _NONE
        return parse_number(text, field)

    def _ask_array(self, field: ArrayField) -> Any:
        def validate(text: str) -> Optional[str]:
            if text == "":
                return _blank_check(field, text)
            try:
                parse_array(text)
            except ValueError as exc:
                return str(exc)
            return None

        default = None if field.default is None else json.dumps(field.default)
        text = self.prompter.text(
            f"{field.message} (comma-separated or JSON array)",
            default=default,
            validate=validate,
        )
        if text == "":
            return _NONE
        return parse_array(text)

    def _ask_string(self, field: Field) -> Any:
        min_length = field.min_length if isinstance(field, StringField) else None

        def validate(text: str) -> Optional[str]:
            if text == "":
                return _blank_check(field, text)
            if min_length is not None and len(text) < min_length:
                return f"Must be at least {min_length} characters"
            return None

        default = None if field.default is None else str(field.default)
        text = self.prompter.text(field.message, default=default, validate=validate)
        if text == "":
            return _NONE
        return text
