from __future__ import annotations

import pytest

from cargo_billing.rules.reorder import PriorityReorderer, normalize_priorities


def _ids(rules) -> list[str]:
    return [rule.id for rule in rules]


@pytest.fixture
def rules(rule_factory):
    return [rule_factory(rule_id, index + 1) for index, rule_id in enumerate("abcde")]


@pytest.mark.unit
def test_move_down_uses_splice_semantics(rules) -> None:
    reordered = PriorityReorderer.reorder(rules, "a", "c")

    assert _ids(reordered) == ["b", "c", "a", "d", "e"]
    assert [r.priority for r in reordered] == [1, 2, 3, 4, 5]


@pytest.mark.unit
def test_move_up(rules) -> None:
    reordered = PriorityReorderer.reorder(rules, "e", "b")

    assert _ids(reordered) == ["a", "e", "b", "c", "d"]
    assert [r.priority for r in reordered] == [1, 2, 3, 4, 5]


@pytest.mark.unit
def test_input_list_is_not_mutated(rules) -> None:
    before = list(rules)

    PriorityReorderer.reorder(rules, "a", "e")

    assert rules == before


@pytest.mark.unit
@pytest.mark.parametrize(("moved", "target"), [("c", "c"), ("zz", "a"), ("a", "zz")])
def test_noop_moves_keep_order(rules, moved, target) -> None:
    reordered = PriorityReorderer.reorder(rules, moved, target)

    assert _ids(reordered) == _ids(rules)
    assert reordered is not rules


@pytest.mark.unit
def test_every_move_produces_dense_unique_priorities(rules) -> None:
    for moved in "abcde":
        for target in "abcde":
            priorities = [r.priority for r in PriorityReorderer.reorder(rules, moved, target)]
            assert priorities == list(range(1, 6))


@pytest.mark.unit
def test_normalize_closes_gaps_in_priority_order(rule_factory) -> None:
    gapped = [rule_factory("x", 10), rule_factory("y", 3), rule_factory("z", 7)]

    normalized = normalize_priorities(gapped)

    assert _ids(normalized) == ["y", "z", "x"]
    assert [r.priority for r in normalized] == [1, 2, 3]


@pytest.mark.unit
def test_priority_updates_payload(rules) -> None:
    payload = PriorityReorderer.priority_updates(PriorityReorderer.reorder(rules, "b", "a"))

    assert payload[:2] == [{"id": "b", "priority": 1}, {"id": "a", "priority": 2}]
