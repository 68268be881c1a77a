# cargo_billing/rules/matcher.py

from cargo_billing.core.constants import RuleLogic
from cargo_billing.core.types import Record, Rule
from .conditions import ConditionEvaluator


class RuleMatcher:
    """Decides whether a rule fires for a record."""

    @staticmethod
    def matches(record: Record, rule: Rule) -> bool:
        """
        Combine a rule's conditions with its AND/OR logic.

        Inactive rules and rules without conditions never match.
        """
        if not rule.is_active or not rule.conditions:
            return False

        results = (
            ConditionEvaluator.evaluate(record, condition)
            for condition in rule.conditions
        )
        if rule.logic == RuleLogic.OR:
            return any(results)
        return all(results)


matches = RuleMatcher.matches
