"""Tests for argument schema parsing."""

from __future__ import annotations

import pytest

from yieldrecipes.schema.fields import (
    ArrayField,
    BoolField,
    EnumField,
    NumberField,
    ObjectField,
    StringField,
    ValidatorRefField,
    parse_fields,
)


class TestYieldsFieldList:
    """``{"fields": [...]}`` schemas from the Yields API."""

    def test_types_are_mapped(self) -> None:
        fields = parse_fields({"fields": [
            {"name": "amount", "label": "Amount", "type": "string", "required": True},
            {"name": "validatorAddress", "type": "string", "optionsRef": "/v1/yields/x/validators"},
            {"name": "duration", "type": "integer", "minimum": "1", "maximum": 365},
            {"name": "mode", "type": "string", "options": ["fast", {"value": "slow", "label": "Slow"}]},
            {"name": "autoCompound", "type": "boolean"},
            {"name": "tokens", "type": "string", "isArray": True},
            {"name": "receiver", "type": "object", "fields": [{"name": "address", "type": "string"}]},
        ]})

        by_name = {f.name: f for f in fields}
        assert [f.name for f in fields] == [
            "amount", "validatorAddress", "duration", "mode", "autoCompound", "tokens", "receiver",
        ]
        assert isinstance(by_name["amount"], StringField)
        assert by_name["amount"].required
        assert isinstance(by_name["validatorAddress"], ValidatorRefField)
        assert isinstance(by_name["duration"], NumberField)
        assert by_name["duration"].integer
        assert by_name["duration"].minimum == 1.0
        assert isinstance(by_name["mode"], EnumField)
        assert [c.label for c in by_name["mode"].choices] == ["fast", "Slow"]
        assert isinstance(by_name["autoCompound"], BoolField)
        assert isinstance(by_name["tokens"], ArrayField)
        assert isinstance(by_name["receiver"], ObjectField)
        assert by_name["receiver"].fields[0].name == "address"

    def test_validator_list_is_many(self) -> None:
        (field,) = parse_fields({"fields": [
            {"name": "validatorAddresses", "type": "string", "isArray": True, "optionsRef": "validators"},
        ]})
        assert isinstance(field, ValidatorRefField)
        assert field.many

    def test_message_marks_optional(self) -> None:
        (field,) = parse_fields({"fields": [{"name": "memo", "description": "Note"}]})
        assert field.message == "memo - Note (optional)"


class TestJsonSchemaProperties:
    """Perps-style ``properties`` / ``required`` schemas."""

    def test_nullable_union_type_and_required(self) -> None:
        fields = parse_fields({
            "type": "object",
            "properties": {
                "marketId": {"type": "string"},
                "size": {"type": ["number", "null"], "minimum": 0},
                "side": {"type": "string", "enum": ["long", "short"]},
            },
            "required": ["marketId", "side"],
        })

        by_name = {f.name: f for f in fields}
        assert by_name["marketId"].required
        assert isinstance(by_name["size"], NumberField)
        assert not by_name["size"].required
        assert isinstance(by_name["side"], EnumField)

    def test_nested_properties(self) -> None:
        (field,) = parse_fields({"properties": {
            "tp": {"type": "object", "properties": {"price": {"type": "number"}}, "required": ["price"]},
        }})
        assert isinstance(field, ObjectField)
        assert field.fields[0].required


class TestStakeKitArguments:
    """Label-less StakeKit argument maps."""

    def test_legacy_map(self) -> None:
        fields = parse_fields({
            "amount": {"required": True, "minimum": 0},
            "validatorAddress": {"required": True},
            "tronResource": {"required": True},
            "duration": {"minimum": 1},
            "providerId": {},
        })

        by_name = {f.name: f for f in fields}
        assert isinstance(by_name["amount"], NumberField)
        assert by_name["amount"].as_string
        assert by_name["amount"].title == "Amount"
        assert isinstance(by_name["validatorAddress"], ValidatorRefField)
        assert [c.value for c in by_name["tronResource"].choices] == ["ENERGY", "BANDWIDTH"]
        assert by_name["duration"].integer
        assert isinstance(by_name["providerId"], StringField)

    def test_addresses_args_wrapper_is_unwrapped(self) -> None:
        fields = parse_fields({
            "addresses": {"address": {"required": True}},
            "args": {"amount": {"required": True}},
        })
        assert [f.name for f in fields] == ["amount"]

    def test_addresses_only_block_has_no_fields(self) -> None:
        assert parse_fields({"addresses": {"address": {"required": True}}}) == ()
        assert parse_fields({"addresses": {}, "args": None}) == ()


def test_missing_schema_is_empty() -> None:
    assert parse_fields(None) == ()
    assert parse_fields({}) == ()


def test_unsupported_schema_type() -> None:
    with pytest.raises(TypeError):
        parse_fields("amount")
