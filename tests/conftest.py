"""Shared fixtures: a Notion database, a page from it, and a form over it."""

import pytest

from notionforms.models import FormConfig

DATABASE_ID = "1b2c3d4e-0000-4000-8000-000000000001"
PAGE_ID = "9f8e7d6c-0000-4000-8000-000000000002"


@pytest.fixture
def raw_database() -> dict:
    """A ``databases.retrieve`` response."""
    return {
        "object": "database",
        "id": DATABASE_ID,
        "url": "https://www.notion.so/1b2c3d4e000040008000000000000001",
        "title": [{"type": "text", "plain_text": "Bug reports"}],
        "properties": {
            "Summary": {"id": "title", "name": "Summary", "type": "title", "title": {}},
            "Severity": {
                "id": "a%3Bc",
                "name": "Severity",
                "type": "select",
                "select": {"options": [{"id": "o1", "name": "Low"}, {"id": "o2", "name": "High"}]},
            },
            "Tags": {
                "id": "T%7Cg",
                "name": "Tags",
                "type": "multi_select",
                "multi_select": {"options": [{"id": "o3", "name": "ui"}]},
            },
            "Estimate": {
                "id": "E%3Ds",
                "name": "Estimate",
                "type": "number",
                "number": {"format": "number"},
            },
            "Reporter": {"id": "Xy%7D", "name": "Reporter", "type": "people", "people": {}},
            "Due": {"id": "D%40e", "name": "Due", "type": "date", "date": {}},
            "Score": {
                "id": "S%5Cc",
                "name": "Score",
                "type": "formula",
                "formula": {"expression": "prop(\"Estimate\") * 2"},
            },
        },
    }


@pytest.fixture
def raw_page() -> dict:
    """A page of the database above, as returned by the query and pages APIs."""
    return {
        "object": "page",
        "id": PAGE_ID,
        "url": "https://www.notion.so/Crash-9f8e7d6c000040008000000000000002",
        "created_time": "2024-03-01T10:00:00.000Z",
        "last_edited_time": "2024-03-02T11:30:00.000Z",
        "properties": {
            "Summary": {
                "id": "title",
                "type": "title",
                "title": [
                    {"type": "text", "plain_text": "Crash on "},
                    {"type": "text", "plain_text": "save"},
                ],
            },
            "Severity": {"id": "a%3Bc", "type": "select", "select": {"id": "o2", "name": "High"}},
            "Tags": {"id": "T%7Cg", "type": "multi_select", "multi_select": [{"name": "ui"}]},
            "Estimate": {"id": "E%3Ds", "type": "number", "number": 3},
            "Reporter": {
                "id": "Xy%7D",
                "type": "people",
                "people": [
                    {
                        "object": "user",
                        "id": "user-1",
                        "name": "Ada",
                        "person": {"email": "ada@example.com"},
                    }
                ],
            },
            "Due": {"id": "D%40e", "type": "date", "date": {"start": "2024-04-01", "end": None}},
            "Score": {"id": "S%5Cc", "type": "formula", "formula": {"type": "number", "number": 6}},
        },
    }


@pytest.fixture
def form_data() -> dict:
    """Stored (camelCase) JSON of a form over the database above."""
    return {
        "id": "form-1",
        "name": "Bug reports",
        "databaseId": DATABASE_ID,
        "mode": "create",
        "fields": [
            {
                "propertyId": "title",
                "propertyType": "title",
                "label": "Summary",
                "required": True,
                "showInList": True,
            },
            {
                "propertyId": "a%3Bc",
                "propertyType": "select",
                "label": "Severity",
                "showInList": True,
                "defaultValue": {"type": "static", "value": "Low"},
            },
            {
                "propertyId": "E%3Ds",
                "propertyType": "number",
                "label": "Estimate",
                "validation": {"min": 0, "max": 10},
            },
            {
                "propertyId": "Xy%7D",
                "propertyType": "people",
                "label": "Reporter",
                "editable": False,
                "defaultValue": {"type": "function", "name": "current_user"},
            },
            {
                "propertyId": "S%5Cc",
                "propertyType": "formula",
                "label": "Score",
                "editable": False,
            },
        ],
        "filters": [
            {
                "propertyId": "a%3Bc",
                "propertyType": "select",
                "operator": "does_not_equal",
                "value": "Closed",
            }
        ],
        "sorts": [{"property": "Due", "direction": "descending"}],
        "pageSize": 10,
        "permissions": {"allowCreate": True, "allowEdit": True, "allowList": True},
    }


@pytest.fixture
def form(form_data) -> FormConfig:
    return FormConfig.model_validate(form_data)
