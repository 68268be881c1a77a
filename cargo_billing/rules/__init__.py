# cargo_billing/rules/__init__.py

"""
Rule-based assignment engine shared by the customer and rate workflows.
"""

from .conditions import ConditionEvaluator
from .matcher import RuleMatcher
from .rates import RateCalculator, round_money
from .reorder import PriorityReorderer, assign_dense_priorities, normalize_priorities
from .resolver import RuleResolver, index_rates, sort_by_priority

__all__ = [
    "ConditionEvaluator",
    "RuleMatcher",
    "RuleResolver",
    "RateCalculator",
    "PriorityReorderer",
    "assign_dense_priorities",
    "normalize_priorities",
    "index_rates",
    "sort_by_priority",
    "round_money",
]
