# cargo_billing/rules/reorder.py

"""
Drag-and-drop reordering of rule lists.

All functions are pure: they return a new list and leave the input untouched,
so callers can keep the previous list as a rollback snapshot.
"""

from typing import Dict, List, Optional, Sequence

from cargo_billing.core.types import Rule


def _index_of(rules: Sequence[Rule], rule_id: str) -> Optional[int]:
    for index, rule in enumerate(rules):
        if rule.id == rule_id:
            return index
    return None


def assign_dense_priorities(rules: Sequence[Rule]) -> List[Rule]:
    """Set priority = position + 1 for every rule, keeping the given order."""
    return [
        rule if rule.priority == index + 1 else rule.with_priority(index + 1)
        for index, rule in enumerate(rules)
    ]


def normalize_priorities(rules: Sequence[Rule]) -> List[Rule]:
    """Sort by current priority (stable) and make priorities dense from 1."""
    return assign_dense_priorities(sorted(rules, key=lambda rule: rule.priority))


class PriorityReorderer:
    """Recomputes sequential priorities after a manual move."""

    @staticmethod
    def reorder(rules: Sequence[Rule], moved_id: str, target_id: str) -> List[Rule]:
        """
        Move one rule to the position currently held by another.

        Splice semantics: the moved rule is removed from its index and
        reinserted at the target's index; every rule then gets
        priority = index + 1.

        Args:
            rules: Rule list in display order
            moved_id: Id of the dragged rule
            target_id: Id of the rule it was dropped on

        Returns:
            New rule list; the same ordering (as a new list) on a no-op move
        """
        if moved_id == target_id:
            return list(rules)

        old_index = _index_of(rules, moved_id)
        new_index = _index_of(rules, target_id)
        if old_index is None or new_index is None:
            return list(rules)

        reordered = list(rules)
        moved = reordered.pop(old_index)
        reordered.insert(new_index, moved)
        return assign_dense_priorities(reordered)

    @staticmethod
    def priority_updates(rules: Sequence[Rule]) -> List[Dict[str, object]]:
        """Payload for the store's bulk priority write."""
        return [{"id": rule.id, "priority": rule.priority} for rule in rules]


reorder = PriorityReorderer.reorder
