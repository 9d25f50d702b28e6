"""Default values and validation for form submissions."""

import logging
import math
import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Any

from notionforms.models import (
    DefaultValue,
    FieldDefinition,
    FormContext,
    FormulaDefault,
    FunctionDefault,
    StaticDefault,
)
from notionforms.notion.codec import to_number

logger = logging.getLogger(__name__)


def is_empty(value: Any) -> bool:
    """Whether a submitted value counts as "not filled in"."""
    return value is None or value == "" or value == []


def resolve_default(default: DefaultValue | None, context: FormContext | None = None) -> Any:
    """Resolve a field's configured default to a concrete form value."""
    context = context or FormContext()

    match default:
        case None:
            return None
        case StaticDefault(value=value):
            return value
        case FunctionDefault(name="today"):
            return date.today().isoformat()
        case FunctionDefault(name="now"):
            return datetime.now(timezone.utc).isoformat()
        case FunctionDefault(name="current_user"):
            return context.user_id
        case FormulaDefault(expression=expression):
            logger.debug(f"Formula defaults are not evaluated: {expression!r}")
            return None
    return None


def apply_defaults(
    fields: Iterable[FieldDefinition],
    values: Mapping[str, Any],
    context: FormContext | None = None,
) -> dict[str, Any]:
    """Fill empty values of fields that declare a default.

    Returns a new mapping; ``values`` is not modified.
    """
    result = dict(values)
    for field in fields:
        if field.default_value is None or not is_empty(result.get(field.property_id)):
            continue
        default = resolve_default(field.default_value, context)
        if not is_empty(default):
            result[field.property_id] = default
    return result


def validate_field(field: FieldDefinition, value: Any) -> str | None:
    """Validate one submitted value.

    Returns:
        The error message, or None when the value is acceptable.
    """
    if is_empty(value):
        return f"{field.label} is required" if field.required else None

    error = None
    rules = field.validation

    if field.property_type == "number":
        number = to_number(value)
        if math.isnan(number):
            return f"{field.label} must be a number"
        if rules and rules.min is not None and number < rules.min:
            error = f"Minimum value is {rules.min:g}"
        if rules and rules.max is not None and number > rules.max:
            error = f"Maximum value is {rules.max:g}"

    if rules and rules.pattern:
        try:
            matched = re.search(rules.pattern, str(value)) is not None
        except re.error:
            logger.warning(f"Invalid validation pattern for {field.property_id}: {rules.pattern!r}")
            matched = True
        if not matched:
            error = rules.message or "Invalid format"

    return error


def validate_submission(
    fields: Iterable[FieldDefinition],
    values: Mapping[str, Any],
) -> dict[str, str]:
    """Validate submitted values against the visible fields of a form.

    Returns:
        Error messages keyed by property id; empty when the submission is valid.
    """
    errors = {}
    for field in fields:
        if not field.visible:
            continue
        error = validate_field(field, values.get(field.property_id))
        if error:
            errors[field.property_id] = error
    return errors
