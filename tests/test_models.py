"""Tests for form configuration models."""

import json

import pytest
from pydantic import ValidationError

from notionforms.exceptions import ConfigurationError
from notionforms.models import (
    READ_ONLY_TYPES,
    FieldDefinition,
    FilterOperator,
    FormConfig,
    FormulaDefault,
    FunctionDefault,
    StaticDefault,
)


class TestFieldDefinition:
    def test_parses_camel_case(self):
        field = FieldDefinition.model_validate(
            {
                "propertyId": "a%3Bc",
                "propertyType": "select",
                "label": "Severity",
                "helpText": "How bad is it?",
                "showInList": True,
            }
        )
        assert field.property_id == "a%3Bc"
        assert field.help_text == "How bad is it?"
        assert field.show_in_list is True
        assert field.required is False
        assert field.editable is True
        assert field.visible is True

    def test_accepts_legacy_notion_keys(self):
        field = FieldDefinition.model_validate(
            {"notionPropertyId": "title", "notionPropertyType": "title", "label": "Name"}
        )
        assert field.property_id == "title"
        assert field.property_type == "title"

    def test_default_value_union(self):
        def parse(default):
            return FieldDefinition.model_validate(
                {"propertyId": "x", "propertyType": "date", "label": "X", "defaultValue": default}
            ).default_value

        assert parse({"type": "static", "value": 3}) == StaticDefault(value=3)
        assert parse({"type": "function", "name": "today"}) == FunctionDefault(name="today")
        assert parse({"type": "formula", "expression": "1+1"}) == FormulaDefault(expression="1+1")
        with pytest.raises(ValidationError):
            parse({"type": "function", "name": "tomorrow"})

    def test_frozen(self):
        field = FieldDefinition(property_id="x", property_type="title", label="X")
        with pytest.raises(ValidationError):
            field.label = "Y"

    def test_serializes_camel_case(self):
        field = FieldDefinition(property_id="x", property_type="title", label="X")
        dumped = field.model_dump(by_alias=True)
        assert dumped["propertyId"] == "x"
        assert dumped["propertyType"] == "title"
        assert dumped["showInList"] is False

    def test_read_only(self):
        assert FieldDefinition(property_id="x", property_type="rollup", label="X").is_read_only
        assert not FieldDefinition(property_id="x", property_type="title", label="X").is_read_only
        assert "unique_id" in READ_ONLY_TYPES


class TestFormConfig:
    def test_parses_stored_json(self, form):
        assert form.database_id.startswith("1b2c3d4e")
        assert form.page_size == 10
        assert form.permissions.allow_list is True
        assert form.permissions.allow_delete is False
        assert form.filters[0].operator is FilterOperator.DOES_NOT_EQUAL
        assert form.sorts[0].model_dump() == {"property": "Due", "direction": "descending"}

    def test_field_order_preserved(self, form):
        assert [f.label for f in form.fields] == ["Summary", "Severity", "Estimate", "Reporter", "Score"]
        assert [f.label for f in form.list_fields()] == ["Summary", "Severity"]

    def test_get_field(self, form):
        assert form.get_field("E%3Ds").label == "Estimate"
        assert form.get_field("missing") is None

    def test_visible_fields(self, form_data):
        form_data["fields"][2]["visible"] = False
        form = FormConfig.model_validate(form_data)
        assert "Estimate" not in [f.label for f in form.visible_fields()]

    def test_duplicate_property_ids_rejected(self, form_data):
        form_data["fields"].append(dict(form_data["fields"][0], label="Again"))
        with pytest.raises(ValidationError, match="Duplicate field"):
            FormConfig.model_validate(form_data)

    def test_defaults(self):
        form = FormConfig(database_id="db")
        assert form.fields == []
        assert form.page_size == 20
        assert form.permissions.allow_create is True
        assert form.permissions.allow_edit is False
        assert form.layout.show_title is True

    def test_page_size_bounds(self):
        with pytest.raises(ValidationError):
            FormConfig(database_id="db", page_size=101)

    def test_load(self, tmp_path, form_data):
        path = tmp_path / "form.json"
        path.write_text(json.dumps(form_data), encoding="utf-8")
        assert FormConfig.load(path).name == "Bug reports"

    def test_load_invalid(self, tmp_path):
        path = tmp_path / "form.json"
        path.write_text('{"name": "no database"}', encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid form config"):
            FormConfig.load(path)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Cannot read"):
            FormConfig.load(tmp_path / "nope.json")
