"""Compile list view filter rows into a Notion database query filter.

Each rule becomes ``{"property": <id>, <type>: <condition>}``. Rules whose
operator is not supported for their property type are dropped rather than
reported: a misconfigured filter narrows the list view instead of breaking it.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from notionforms.models import FilterOperator, FilterRule
from notionforms.notion.codec import to_number

logger = logging.getLogger(__name__)

TEXT_OPERATORS = frozenset(
    {
        FilterOperator.EQUALS,
        FilterOperator.DOES_NOT_EQUAL,
        FilterOperator.CONTAINS,
        FilterOperator.DOES_NOT_CONTAIN,
        FilterOperator.STARTS_WITH,
        FilterOperator.ENDS_WITH,
    }
)
NUMBER_OPERATORS = frozenset(
    {
        FilterOperator.EQUALS,
        FilterOperator.DOES_NOT_EQUAL,
        FilterOperator.GREATER_THAN,
        FilterOperator.LESS_THAN,
        FilterOperator.GREATER_THAN_OR_EQUAL_TO,
        FilterOperator.LESS_THAN_OR_EQUAL_TO,
    }
)
EQUALITY_OPERATORS = frozenset({FilterOperator.EQUALS, FilterOperator.DOES_NOT_EQUAL})
MEMBERSHIP_OPERATORS = frozenset({FilterOperator.CONTAINS, FilterOperator.DOES_NOT_CONTAIN})

# Comparison operators map onto Notion's date vocabulary
DATE_OPERATORS = {
    FilterOperator.EQUALS: "equals",
    FilterOperator.GREATER_THAN: "after",
    FilterOperator.LESS_THAN: "before",
    FilterOperator.GREATER_THAN_OR_EQUAL_TO: "on_or_after",
    FilterOperator.LESS_THAN_OR_EQUAL_TO: "on_or_before",
}


def build_condition(property_type: str, operator: str, value: Any = None) -> dict | None:
    """Build the condition object for one filter rule.

    Returns:
        The condition (e.g. ``{"contains": "x"}``), or ``None`` when the
        operator is not supported for the property type.
    """
    try:
        operator = FilterOperator(operator)
    except (ValueError, TypeError):
        return None

    if operator in (FilterOperator.IS_EMPTY, FilterOperator.IS_NOT_EMPTY):
        return {operator.value: True}

    match property_type:
        case "title" | "rich_text" | "url" | "email" | "phone_number":
            if operator in TEXT_OPERATORS:
                return {operator.value: value}

        case "number":
            if operator in NUMBER_OPERATORS:
                number = to_number(value)
                # NaN and infinities have no JSON form
                if not math.isfinite(number):
                    return None
                return {operator.value: number}

        case "select" | "status":
            if operator in EQUALITY_OPERATORS:
                return {operator.value: value}

        case "multi_select" | "people":
            if operator in MEMBERSHIP_OPERATORS:
                return {operator.value: value}

        case "checkbox":
            # The requested operator is ignored for checkboxes
            return {"equals": value is True or value == "true"}

        case "date":
            if operator in DATE_OPERATORS:
                return {DATE_OPERATORS[operator]: value}

    return None


def _coerce_rule(rule: FilterRule | Mapping[str, Any]) -> FilterRule | None:
    if isinstance(rule, FilterRule):
        return rule
    try:
        return FilterRule.model_validate(rule)
    except ValidationError as e:
        logger.debug(f"Ignoring malformed filter rule {rule!r}: {e}")
        return None


def compile_filters(rules: Iterable[FilterRule | Mapping[str, Any]]) -> dict | None:
    """Compile filter rules into the ``filter`` of a database query.

    Rules are ANDed together. Unsupported or malformed rules are dropped.

    Returns:
        ``None`` when no rule survives, the single property filter when
        exactly one does, otherwise ``{"and": [...]}``.
    """
    compiled = []
    for raw_rule in rules:
        rule = _coerce_rule(raw_rule)
        if rule is None:
            continue

        condition = build_condition(rule.property_type, rule.operator, rule.value)
        if condition is None:
            logger.debug(
                f"Dropping filter on {rule.property_id}: "
                f"'{rule.operator}' is not supported for {rule.property_type}"
            )
            continue

        compiled.append({"property": rule.property_id, rule.property_type: condition})

    if not compiled:
        return None
    if len(compiled) == 1:
        return compiled[0]
    return {"and": compiled}
