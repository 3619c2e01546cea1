"""
Typed argument-schema fields.

The APIs describe action arguments in three loosely related shapes:

- Yields API:  ``{"fields": [{"name", "label", "type", "required",
  "options", "optionsRef", "isArray", "minimum", "maximum", "default",
  "fields"}]}``
- Perps API:   JSON-Schema style ``{"properties": {...}, "required": [...]}``
  where ``type`` may be a list
- StakeKit:    ``{"amount": {"required": true, "minimum": 0}, "validatorAddress":
  {"required": true}, ...}``

``parse_fields`` turns any of them into a tuple of ``Field`` variants once,
so the prompter interprets a closed set of types instead of re-sniffing
raw dicts at every step.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .prompts import Choice

VALIDATOR_FIELD_NAMES = frozenset({"validatorAddress", "validatorAddresses"})

# Prompt wording for StakeKit arguments, which carry no labels
LEGACY_LABELS = {
    "amount": "Amount",
    "validatorAddress": "Select a validator",
    "validatorAddresses": "Select a validator",
    "tronResource": "Which resource would you like to freeze?",
    "duration": "For how long would you like to stake? (in days)",
    "feeConfigurationId": "Select a fee configuration",
}
TRON_RESOURCES = ("ENERGY", "BANDWIDTH")


@dataclass(frozen=True)
class Field:
    name: str
    label: str = ""
    description: str = ""
    required: bool = False
    default: Any = None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @property
    def title(self) -> str:
        return self.label or self.name

    @property
    def message(self) -> str:
        text = self.title
        if self.description:
            text += f" - {self.description}"
        if not self.required:
            text += " (optional)"
        return text


@dataclass(frozen=True)
class ValidatorRefField(Field):
    many: bool = False
    options_ref: str = ""


@dataclass(frozen=True)
class EnumField(Field):
    choices: tuple[Choice, ...] = ()


@dataclass(frozen=True)
class NumberField(Field):
    integer: bool = False
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    as_string: bool = False


@dataclass(frozen=True)
class BoolField(Field):
    pass


@dataclass(frozen=True)
class ArrayField(Field):
    pass


@dataclass(frozen=True)
class ObjectField(Field):
    fields: tuple[Field, ...] = ()


@dataclass(frozen=True)
class StringField(Field):
    min_length: Optional[int] = None


# ============ Parsing helpers ============


def _number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _choices(options: Any) -> tuple[Choice, ...]:
    result = []
    for option in options or []:
        if isinstance(option, dict):
            value = option.get("value", option.get("id", option.get("name")))
            label = option.get("label") or option.get("name") or str(value)
            result.append(Choice(str(label), value))
        else:
            result.append(Choice(str(option), option))
    return tuple(result)


def _is_validator_ref(name: str, options_ref: Any) -> bool:
    if not options_ref:
        return False
    return name in VALIDATOR_FIELD_NAMES or "validator" in str(options_ref).lower()


def _primary_type(raw_type: Any) -> str:
    if isinstance(raw_type, list):
        non_null = [t for t in raw_type if t != "null"]
        return str(non_null[0]) if non_null else "string"
    return str(raw_type or "string")


def _common(name: str, spec: dict[str, Any], required: bool) -> dict[str, Any]:
    return {
        "name": name,
        "label": str(spec.get("label") or ""),
        "description": str(spec.get("description") or ""),
        "required": required,
        "default": spec.get("default"),
    }


def _build(
    name: str,
    spec: dict[str, Any],
    required: bool,
    type_name: str,
    is_array: bool,
    children: tuple[Field, ...],
) -> Field:
    base = _common(name, spec, required)
    options = spec.get("options") or spec.get("enum")

    if _is_validator_ref(name, spec.get("optionsRef")):
        many = is_array or name.endswith("es")
        return ValidatorRefField(**base, many=many, options_ref=str(spec.get("optionsRef") or ""))
    if options:
        return EnumField(**base, choices=_choices(options))
    if type_name in ("number", "integer"):
        return NumberField(
            **base,
            integer=type_name == "integer",
            minimum=_number(spec.get("minimum")),
            maximum=_number(spec.get("maximum")),
        )
    if type_name == "boolean":
        return BoolField(**base)
    if is_array or type_name == "array":
        return ArrayField(**base)
    if type_name == "object" and children:
        return ObjectField(**base, fields=children)
    min_length = spec.get("minLength")
    return StringField(**base, min_length=int(min_length) if min_length is not None else None)


# ============ Schema shapes ============


def _parse_field_list(items: list[dict[str, Any]]) -> tuple[Field, ...]:
    result = []
    for item in items:
        name = item.get("name")
        if not name:
            continue
        children = _parse_field_list(item.get("fields") or [])
        result.append(
            _build(
                str(name),
                item,
                bool(item.get("required", False)),
                _primary_type(item.get("type")),
                bool(item.get("isArray", False)),
                children,
            )
        )
    return tuple(result)


def _parse_properties(schema: dict[str, Any]) -> tuple[Field, ...]:
    required = set(schema.get("required") or [])
    result = []
    for name, spec in (schema.get("properties") or {}).items():
        spec = spec or {}
        children = _parse_properties(spec) if spec.get("properties") else ()
        result.append(
            _build(
                name,
                spec,
                name in required,
                _primary_type(spec.get("type")),
                False,
                children,
            )
        )
    return tuple(result)


def _parse_legacy(args: dict[str, Any]) -> tuple[Field, ...]:
    result: list[Field] = []
    for name, spec in args.items():
        if not isinstance(spec, dict):
            spec = {}
        base = _common(name, spec, bool(spec.get("required", False)))
        if not base["label"]:
            base["label"] = LEGACY_LABELS.get(name, "")
        if name in VALIDATOR_FIELD_NAMES:
            result.append(ValidatorRefField(**base, many=name == "validatorAddresses"))
        elif name == "tronResource":
            result.append(EnumField(**base, choices=_choices(spec.get("options") or TRON_RESOURCES)))
        elif spec.get("options"):
            result.append(EnumField(**base, choices=_choices(spec["options"])))
        elif name in ("amount", "duration") or "minimum" in spec or "maximum" in spec:
            result.append(
                NumberField(
                    **base,
                    integer=name == "duration",
                    minimum=_number(spec.get("minimum")),
                    maximum=_number(spec.get("maximum")),
                    as_string=True,
                )
            )
        else:
            result.append(StringField(**base))
    return tuple(result)


def parse_fields(schema: Any) -> tuple[Field, ...]:
    """
    Parse an argument schema in any of the supported shapes.

    Returns:
        Fields in declaration order; empty for a missing schema
    """
    if not schema:
        return ()
    if isinstance(schema, (list, tuple)):
        if all(isinstance(f, Field) for f in schema):
            return tuple(schema)
        return _parse_field_list(list(schema))
    if not isinstance(schema, dict):
        raise TypeError(f"Unsupported argument schema: {type(schema).__name__}")
    if isinstance(schema.get("fields"), list):
        return _parse_field_list(schema["fields"])
    if "properties" in schema:
        return _parse_properties(schema)
    # StakeKit nests the argument map under "args"; "addresses" is never prompted
    if set(schema) <= {"addresses", "args"}:
        args = schema.get("args")
        return _parse_legacy(args if isinstance(args, dict) else {})
    return _parse_legacy(schema)
