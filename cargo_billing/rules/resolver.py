# cargo_billing/rules/resolver.py

"""
First-match-wins resolution of a record against a prioritized rule list.

Priority defines precedence: rules are scanned from priority 1 upward and
the scan stops at the first match. Lower-priority rules are never evaluated
once a match is found.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from cargo_billing.core.types import AssignmentResult, RateDefinition, Record, Rule
from .matcher import RuleMatcher
from .rates import RateCalculator

logger = logging.getLogger(__name__)


def sort_by_priority(rules: Iterable[Rule]) -> List[Rule]:
    """Ascending priority; ties keep their list order."""
    return sorted(rules, key=lambda rule: rule.priority)


class RuleResolver:
    """Resolves one record to a single assignment."""

    @staticmethod
    def find_match(record: Record, rules: Sequence[Rule]) -> Optional[Rule]:
        """Return the first matching rule in priority order, or None."""
        for rule in sort_by_priority(rules):
            if RuleMatcher.matches(record, rule):
                return rule
        return None

    @classmethod
    def resolve(
        cls,
        record: Record,
        rules: Sequence[Rule],
        rates: Optional[Mapping[str, RateDefinition]] = None,
    ) -> AssignmentResult:
        """
        Resolve a record against a rule list.

        Args:
            record: Field mapping of one shipment line
            rules: Rule list (any order; evaluated by ascending priority)
            rates: Rate definitions by id, for the rate workflow

        Returns:
            Assignment of the first matching rule, or the unassigned result
        """
        rule = cls.find_match(record, rules)
        if rule is None:
            return AssignmentResult.unassigned()

        assignment = rule.assignment
        computed_value = 0.0
        error = None

        rate_id = assignment.rate_definition_id
        if rate_id is not None and rates is not None:
            rate = rates.get(rate_id)
            if rate is None:
                error = f"Rate definition {rate_id} not found for rule {rule.id}"
                logger.warning(f"⚠️ {error}")
            else:
                computed_value, error = RateCalculator.compute_with_status(record, rate)

        return AssignmentResult(
            matched_rule_id=rule.id,
            target_id=assignment.target_id,
            computed_value=computed_value,
            rate_definition_id=rate_id,
            error=error,
        )

    @classmethod
    def resolve_all(
        cls,
        records: Iterable[Record],
        rules: Sequence[Rule],
        rates: Optional[Mapping[str, RateDefinition]] = None,
    ) -> List[AssignmentResult]:
        """Resolve every record independently, e.g. for display or export."""
        ordered = sort_by_priority(rules)
        return [cls.resolve(record, ordered, rates) for record in records]


def index_rates(rates: Iterable[RateDefinition]) -> Dict[str, RateDefinition]:
    """Rate definitions keyed by id."""
    return {rate.id: rate for rate in rates}


resolve = RuleResolver.resolve
