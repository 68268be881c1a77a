# cargo_billing/rules/conditions.py

"""
Evaluation of one rule condition against one record.

Malformed input never raises: it degrades to a non-match.
"""

import logging
import math
from typing import Any, Optional

from cargo_billing.core.constants import Operator
from cargo_billing.core.types import Condition, Record

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> str:
    """Lowercased string form; None becomes the empty string."""
    if value is None:
        return ""
    return str(value).lower()


def _as_number(value: Any) -> Optional[float]:
    """Parse a float, returning None for anything non-numeric or NaN."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value == ""


class ConditionEvaluator:
    """Pure evaluator for the closed set of condition operators."""

    @staticmethod
    def evaluate(record: Record, condition: Condition) -> bool:
        """
        Test a single condition against a record.

        Args:
            record: Field mapping of one shipment line
            condition: Field, operator and bound(s) to test

        Returns:
            True when the record satisfies the condition
        """
        raw = record.get(condition.field) if record else None
        operator = condition.operator

        if operator == Operator.NOT_EMPTY:
            return not _is_empty(raw)
        if operator == Operator.IS_EMPTY:
            return _is_empty(raw)

        if operator in (Operator.GREATER_THAN, Operator.LESS_THAN):
            field_number = _as_number(raw)
            bound = _as_number(condition.value)
            if field_number is None or bound is None:
                return False
            if operator == Operator.GREATER_THAN:
                return field_number > bound
            return field_number < bound

        if operator == Operator.BETWEEN:
            field_number = _as_number(raw)
            low = _as_number(condition.value)
            high = _as_number(condition.value2)
            if field_number is None or low is None or high is None:
                return False
            return low <= field_number <= high

        field_text = _as_text(raw)
        expected = _as_text(condition.value)

        if operator == Operator.EQUALS:
            return field_text == expected
        if operator == Operator.CONTAINS:
            return expected in field_text
        if operator == Operator.STARTS_WITH:
            return field_text.startswith(expected)
        if operator == Operator.ENDS_WITH:
            return field_text.endswith(expected)

        logger.warning(f"⚠️ Unknown operator: {operator}")
        return False


evaluate = ConditionEvaluator.evaluate
