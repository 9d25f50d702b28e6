"""Conversion between Notion property JSON and form values.

Read path: ``decode`` turns a Notion property object into a render-ready
``DecodedValue``. Write path: ``encode`` turns a submitted form value into the
property payload expected by the pages API, or ``None`` when the property must
be left out of the request.

Notion addresses properties by their (renamable) name while forms store the
stable property id, so the page-level helpers take an id -> name map built by
the caller from a freshly fetched schema. Nothing here performs I/O.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from notionforms.models import READ_ONLY_TYPES, DecodedValue

logger = logging.getLogger(__name__)


# ==================== Shared coercions ====================


def to_number(value: Any) -> int | float:
    """Coerce a form or filter value to a number.

    Non-numeric input becomes NaN rather than 0 so the Notion API rejects the
    request instead of silently storing a wrong value.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return math.nan
    text = str(value).strip()
    # Digit separators ("1_000") are not accepted as numeric input
    if "_" in text:
        return math.nan
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return math.nan


def to_text(value: Any) -> str:
    """String form of a submitted value (booleans as ``true``/``false``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _as_id(item: Any) -> Any:
    # Decoded people/relation entries carry their id under "id"
    if isinstance(item, Mapping):
        return item.get("id")
    return item


def _id_list(value: Any, split_commas: bool = False) -> list[str]:
    if split_commas and isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    ids = [_as_id(item) for item in _as_list(value)]
    return [to_text(i) for i in ids if i not in (None, "")]


def _rich_text(value: Any) -> list[dict]:
    return [{"type": "text", "text": {"content": to_text(value)}}]


# ==================== Read path ====================


def parse_rich_text(rich_text_array: list | None) -> str:
    """Concatenate the plain text runs of a rich_text array.

    Runs without ``plain_text`` (request payloads) fall back to ``text.content``.
    """
    if not rich_text_array:
        return ""
    return "".join(
        item.get("plain_text", (item.get("text") or {}).get("content", ""))
        for item in rich_text_array
    )


def _parse_person(person: dict) -> dict:
    return {
        "id": person.get("id"),
        "name": person.get("name"),
        "email": (person.get("person") or {}).get("email"),
    }


def _parse_file(file: dict) -> dict:
    url = (file.get("file") or {}).get("url") or (file.get("external") or {}).get("url")
    return {"name": file.get("name"), "url": url}


def _parse_user(user: dict | None) -> dict | None:
    if not user:
        return None
    return {"id": user.get("id"), "name": user.get("name")}


def decode_value(property_type: str, raw_property: Mapping[str, Any] | None) -> Any:
    """Return the bare decoded value of a Notion property object.

    Unknown property types decode to ``None``.
    """
    if not raw_property:
        return None
    value = raw_property.get(property_type)

    match property_type:
        case "title" | "rich_text":
            return parse_rich_text(value)

        case "number" | "checkbox" | "url" | "email" | "phone_number":
            return value

        case "select" | "status":
            return value.get("name") if value else None

        case "multi_select":
            return [option.get("name") for option in value or []]

        case "date":
            return value.get("start") if value else None

        case "people":
            return [_parse_person(person) for person in value or []]

        case "files":
            return [_parse_file(file) for file in value or []]

        case "created_time" | "last_edited_time":
            return value

        case "created_by" | "last_edited_by":
            return _parse_user(value)

        case "formula":
            if not value:
                return None
            return value.get(value.get("type"))

        case "rollup":
            if not value:
                return None
            rollup_type = value.get("type")
            if rollup_type == "array":
                return [
                    decode_value(item.get("type"), item)
                    for item in value.get("array") or []
                ]
            return value.get(rollup_type)

        case "relation":
            return [item.get("id") for item in value or []]

        case "unique_id":
            if not value:
                return None
            return {"prefix": value.get("prefix"), "number": value.get("number")}

        case _:
            return None


def decode(property_type: str, raw_property: Mapping[str, Any] | None) -> DecodedValue:
    """Decode a Notion property object into a type-tagged value."""
    return DecodedValue(type=property_type, value=decode_value(property_type, raw_property))


def decode_page_properties(properties: Mapping[str, Mapping[str, Any]]) -> dict[str, DecodedValue]:
    """Decode a page's properties and re-key them by property id.

    Args:
        properties: The page's ``properties`` object, keyed by property name.

    Returns:
        Decoded values keyed by the stable property id.
    """
    result = {}
    for name, prop in properties.items():
        prop_id = prop.get("id", name)
        result[prop_id] = decode(prop.get("type", ""), prop)
    return result


# ==================== Write path ====================


def encode(property_type: str, value: Any) -> dict | None:
    """Build the Notion payload for one property.

    Returns ``None`` when the property must be omitted from the request: empty
    values (``None`` or ``""``) and read-only property types.
    """
    if value is None or value == "":
        return None
    if property_type in READ_ONLY_TYPES:
        return None

    match property_type:
        case "title" | "rich_text":
            return {property_type: _rich_text(value)}

        case "number":
            return {"number": to_number(value)}

        case "checkbox":
            return {"checkbox": bool(value)}

        case "select" | "status":
            return {property_type: {"name": to_text(value)}}

        case "multi_select":
            return {"multi_select": [{"name": to_text(v)} for v in _as_list(value)]}

        case "date":
            return {"date": {"start": to_text(value)}}

        case "url" | "email" | "phone_number":
            return {property_type: to_text(value)}

        case "relation":
            return {"relation": [{"id": i} for i in _id_list(value, split_commas=True)]}

        case "people":
            return {"people": [{"object": "user", "id": i} for i in _id_list(value)]}

        case "files":
            files = []
            for item in _as_list(value):
                if isinstance(item, Mapping):
                    url = item.get("url")
                    name = item.get("name") or (url or "").rsplit("/", 1)[-1]
                else:
                    url = to_text(item)
                    name = url.rsplit("/", 1)[-1]
                if url:
                    files.append({"type": "external", "name": name, "external": {"url": url}})
            return {"files": files}

        case _:
            # Unknown types are written as text, best effort
            return {"rich_text": _rich_text(value)}


class FieldSubmission(NamedTuple):
    """A submitted value for one form field."""

    property_id: str
    property_type: str
    value: Any


class EncodedProperties(NamedTuple):
    """Page write payload keyed by property name, plus ids that were skipped."""

    properties: dict[str, dict]
    skipped: list[str]


def encode_properties(
    submissions: Iterable[FieldSubmission],
    id_to_name: Mapping[str, str],
) -> EncodedProperties:
    """Encode submitted field values into a pages API ``properties`` object.

    A property id missing from ``id_to_name`` (renamed or deleted since the
    form was configured) is logged and skipped; the rest of the submission
    still goes through.
    """
    properties: dict[str, dict] = {}
    skipped: list[str] = []

    for submission in submissions:
        name = id_to_name.get(submission.property_id)
        if name is None:
            logger.warning(f"Property with ID {submission.property_id} not found in database")
            skipped.append(submission.property_id)
            continue

        payload = encode(submission.property_type, submission.value)
        if payload is not None:
            properties[name] = payload

    return EncodedProperties(properties, skipped)
