# cargo_billing/rules/rates.py

"""
Monetary value of a matched rate definition for one record.

Missing or non-numeric factors degrade to zero; an unknown rate type
yields zero plus an UnknownRateType signal so the record can be flagged
for manual rate assignment.
"""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Tuple

from cargo_billing.core.constants import DefaultValues, ErrorMessages, RateType, StandardColumns
from cargo_billing.core.exceptions import UnknownRateTypeError
from cargo_billing.core.types import RateDefinition, Record

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def _factor(value: Any, default: float = 0.0) -> float:
    """Numeric factor, or the default when missing/NaN/non-numeric."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def round_money(value: float) -> float:
    """Round half-up to 2 decimal places."""
    if not math.isfinite(value):
        return 0.0
    return float(Decimal(repr(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


class RateCalculator:
    """Computes the value of a rate definition applied to a record."""

    @staticmethod
    def calculate(record: Record, rate: RateDefinition) -> float:
        """
        Compute the rate value, raising on an unknown rate type.

        Raises:
            UnknownRateTypeError: rate.rate_type is not a known RateType
        """
        try:
            rate_type = RateType(rate.rate_type)
        except ValueError:
            raise UnknownRateTypeError(
                ErrorMessages.format(
                    ErrorMessages.UNKNOWN_RATE_TYPE, rate_type=rate.rate_type, rate_id=rate.id
                ),
                {"rate_id": rate.id, "rate_type": rate.rate_type},
            )

        base_rate = _factor(rate.base_rate)
        if rate_type == RateType.FIXED:
            return round_money(base_rate)

        weight = _factor((record or {}).get(StandardColumns.TOTAL_KG))
        if rate_type == RateType.PER_KG:
            return round_money(weight * base_rate)

        multiplier = _factor(rate.multiplier, DefaultValues.DEFAULT_MULTIPLIER)
        return round_money(weight * base_rate * multiplier)

    @classmethod
    def compute_with_status(cls, record: Record, rate: RateDefinition) -> Tuple[float, Optional[str]]:
        """Compute the value; returns (0.0, message) for an unknown rate type."""
        try:
            return cls.calculate(record, rate), None
        except UnknownRateTypeError as e:
            logger.warning(f"⚠️ {e.message}")
            return 0.0, e.message

    @classmethod
    def compute(cls, record: Record, rate: RateDefinition) -> float:
        """Compute the value; 0.0 (logged) for an unknown rate type."""
        value, _ = cls.compute_with_status(record, rate)
        return value


compute = RateCalculator.compute
