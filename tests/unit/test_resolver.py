from __future__ import annotations

import pytest

from cargo_billing.core.exceptions import InvalidRuleError
from cargo_billing.core.types import RateDefinition, Rule
from cargo_billing.rules.matcher import RuleMatcher
from cargo_billing.rules.resolver import RuleResolver, index_rates


@pytest.mark.unit
def test_first_matching_rule_by_priority_wins(rule_factory) -> None:
    record = {"orig_oe": "DEFRA", "total_kg": 30}
    heavy = rule_factory("heavy", 1, [{"field": "total_kg", "operator": "greater_than", "value": "50"}])
    frankfurt = rule_factory("fra", 2, [{"field": "orig_oe", "operator": "equals", "value": "DEFRA"}])

    result = RuleResolver.resolve(record, [heavy, frankfurt])

    assert result.matched_rule_id == "fra"
    assert result.target_id == "target-fra"


@pytest.mark.unit
def test_scan_stops_at_first_match(monkeypatch, rule_factory) -> None:
    evaluated = []
    original = RuleMatcher.matches

    def spy(record, rule):
        evaluated.append(rule.id)
        return original(record, rule)

    monkeypatch.setattr(RuleMatcher, "matches", staticmethod(spy))
    miss = rule_factory("miss", 1, [{"field": "orig_oe", "operator": "equals", "value": "NLAMS"}])
    hit = rule_factory("hit", 2)
    later = rule_factory("later", 3)
    last = rule_factory("last", 4)

    result = RuleResolver.resolve({"orig_oe": "DEFRA"}, [last, later, hit, miss])

    assert result.matched_rule_id == "hit"
    assert evaluated == ["miss", "hit"]


@pytest.mark.unit
def test_lower_priority_number_wins_regardless_of_list_order(rule_factory) -> None:
    record = {"orig_oe": "DEFRA"}
    first = rule_factory("a", 1)
    second = rule_factory("b", 2)

    assert RuleResolver.resolve(record, [second, first]).matched_rule_id == "a"


@pytest.mark.unit
def test_no_match_returns_unassigned(rule_factory) -> None:
    rule = rule_factory("a", 1, [{"field": "orig_oe", "operator": "equals", "value": "NLAMS"}])

    result = RuleResolver.resolve({"orig_oe": "DEFRA"}, [rule])

    assert result.matched_rule_id is None
    assert result.target_id is None
    assert result.is_assigned is False


@pytest.mark.unit
def test_inactive_and_empty_rules_never_match(rule_factory) -> None:
    inactive = rule_factory("off", 1, is_active=False)
    empty = rule_factory("empty", 2, conditions=[])
    fallback = rule_factory("fallback", 3)

    assert RuleMatcher.matches({"orig_oe": "X"}, inactive) is False
    assert RuleMatcher.matches({"orig_oe": "X"}, empty) is False
    assert RuleResolver.resolve({"orig_oe": "X"}, [inactive, empty, fallback]).matched_rule_id == "fallback"


@pytest.mark.unit
def test_or_logic_needs_one_condition(rule_factory) -> None:
    conditions = [
        {"field": "orig_oe", "operator": "equals", "value": "NLAMS"},
        {"field": "mail_cat", "operator": "equals", "value": "A"},
    ]
    any_rule = rule_factory("any", 1, conditions, logic="OR")
    all_rule = rule_factory("all", 1, conditions, logic="AND")
    record = {"orig_oe": "DEFRA", "mail_cat": "a"}

    assert RuleMatcher.matches(record, any_rule) is True
    assert RuleMatcher.matches(record, all_rule) is False


@pytest.mark.unit
def test_resolution_is_deterministic(rule_factory) -> None:
    rules = [rule_factory(str(i), i) for i in range(1, 6)]
    record = {"orig_oe": "DEFRA"}

    results = {RuleResolver.resolve(record, rules) for _ in range(5)}

    assert len(results) == 1


@pytest.mark.unit
def test_rate_rule_computes_value(rule_factory) -> None:
    rule = rule_factory("r", 1, rate_id="per-kg")
    rates = index_rates([RateDefinition(id="per-kg", rate_type="per_kg", base_rate=2.5)])

    result = RuleResolver.resolve({"orig_oe": "DEFRA", "total_kg": 4}, [rule], rates)

    assert result.computed_value == 10.0
    assert result.rate_definition_id == "per-kg"
    assert result.error is None


@pytest.mark.unit
def test_unknown_rate_type_flags_manual_rate(rule_factory) -> None:
    rule = rule_factory("r", 1, rate_id="weird")
    rates = index_rates([RateDefinition(id="weird", rate_type="per_parcel", base_rate=3)])

    result = RuleResolver.resolve({"orig_oe": "DEFRA", "total_kg": 4}, [rule], rates)

    assert result.computed_value == 0.0
    assert result.needs_manual_rate is True


@pytest.mark.unit
def test_missing_rate_definition_is_reported(rule_factory) -> None:
    rule = rule_factory("r", 1, rate_id="gone")

    result = RuleResolver.resolve({"orig_oe": "DEFRA"}, [rule], {})

    assert result.matched_rule_id == "r"
    assert "gone" in result.error


@pytest.mark.unit
def test_resolve_all_keeps_record_order(rule_factory) -> None:
    rule = rule_factory("fra", 1, [{"field": "orig_oe", "operator": "equals", "value": "DEFRA"}])
    records = [{"orig_oe": "DEFRA"}, {"orig_oe": "NLAMS"}]

    results = RuleResolver.resolve_all(records, [rule])

    assert [r.matched_rule_id for r in results] == ["fra", None]


@pytest.mark.unit
def test_rule_from_dict_accepts_camel_case_and_rejects_bad_logic() -> None:
    rule = Rule.from_dict({
        "id": 7,
        "name": "camel",
        "priority": "2",
        "isActive": False,
        "logic": "or",
        "conditions": [],
        "assignment": {"targetId": "cust-1"},
    })
    assert rule.id == "7"
    assert rule.is_active is False
    assert rule.assignment.target_id == "cust-1"

    with pytest.raises(InvalidRuleError):
        Rule.from_dict({"id": "x", "priority": 1, "logic": "XOR"})
