# cargo_billing/services/rule_list_service.py

"""
In-memory rule list owned by one editing session.

Every mutation is applied optimistically to a new tuple, then persisted.
When persistence fails the session restores the snapshot taken before the
mutation; it never re-fetches from the store to roll back.
"""

import asyncio
import logging
import uuid
from dataclasses import fields, replace
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Tuple

from cargo_billing.core.constants import ErrorMessages
from cargo_billing.core.exceptions import (
    AppException, InvalidRuleError, PriorityPersistError, RecordNotFoundError
)
from cargo_billing.core.types import ReorderResult, Rule, WriteResult
from cargo_billing.rules.reorder import (
    PriorityReorderer, assign_dense_priorities, normalize_priorities
)
from cargo_billing.store.base import RecordStore

logger = logging.getLogger(__name__)


class RuleListSession:
    """
    Versioned rule list with snapshot/revert persistence.

    Usage:
        session = RuleListSession(store, await store.load_rules())
        result = await session.move("rule-3", "rule-1")
        if not result.persisted:
            show_error(result.error)   # session.rules is already reverted
    """

    def __init__(self, store: RecordStore, rules: Iterable[Rule] = ()):
        self.store = store
        self._rules: Tuple[Rule, ...] = tuple(normalize_priorities(list(rules)))
        self._version = 0
        self._lock = asyncio.Lock()

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    @property
    def version(self) -> int:
        """Incremented on every visible change, including reverts."""
        return self._version

    def get(self, rule_id: str) -> Optional[Rule]:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def _rejected(self, error: AppException) -> ReorderResult:
        """Refuse a mutation without touching the list or the store."""
        logger.warning(f"⚠️ Rule change rejected: {error.message}")
        return ReorderResult(rules=self._rules, persisted=False, error=error.message)

    def _not_found(self, rule_id: str) -> ReorderResult:
        return self._rejected(RecordNotFoundError(
            ErrorMessages.format(ErrorMessages.RULE_NOT_FOUND, rule_id=rule_id),
            {"rule_id": rule_id},
        ))

    def _publish(self, rules: Iterable[Rule]):
        self._rules = tuple(rules)
        self._version += 1

    # ------------------------------------------------------------
    # Optimistic apply / revert
    # ------------------------------------------------------------

    async def _apply(
        self,
        new_rules: Iterable[Rule],
        persist: Callable[[], Awaitable[WriteResult]],
        action: str,
    ) -> ReorderResult:
        snapshot = self._rules
        self._publish(new_rules)

        try:
            outcome = await persist()
            error = outcome.error
        except Exception as e:
            error = str(e)

        if error is None:
            logger.debug(f"✅ {action} persisted (version {self._version})")
            return ReorderResult(rules=self._rules, persisted=True)

        failure = PriorityPersistError(
            ErrorMessages.format(ErrorMessages.PRIORITY_PERSIST_FAILED, error=error),
            {"action": action},
        )
        logger.error(f"❌ {action} failed, reverting rule list: {failure.message}")
        self._publish(snapshot)
        return ReorderResult(rules=self._rules, persisted=False, error=failure.message)

    async def _persist_priorities(self) -> WriteResult:
        return await self.store.update_priorities(
            PriorityReorderer.priority_updates(self._rules)
        )

    # ------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------

    async def move(self, moved_id: str, target_id: str) -> ReorderResult:
        """Drag-and-drop move; a no-op move persists nothing."""
        async with self._lock:
            reordered = PriorityReorderer.reorder(self._rules, moved_id, target_id)
            if [r.id for r in reordered] == [r.id for r in self._rules]:
                return ReorderResult(rules=self._rules, persisted=True)
            logger.info(f"🔹 Moving rule {moved_id} to the position of {target_id}")
            return await self._apply(reordered, self._persist_priorities, f"Move of rule {moved_id}")

    async def add_rule(self, data: Dict[str, Any]) -> ReorderResult:
        """Append a rule at the lowest precedence (priority N+1)."""
        async with self._lock:
            payload = dict(data)
            payload.setdefault("id", str(uuid.uuid4()))
            payload["priority"] = len(self._rules) + 1
            try:
                rule = Rule.from_dict(payload)
            except InvalidRuleError as e:
                return self._rejected(e)
            return await self._apply(
                self._rules + (rule,),
                lambda: self.store.save_rule(rule),
                f"Creation of rule {rule.id}",
            )

    async def update_rule(self, rule_id: str, **changes) -> ReorderResult:
        """Replace fields of one rule; its priority is not editable here."""
        async with self._lock:
            current = self.get(rule_id)
            if current is None:
                return self._not_found(rule_id)
            changes.pop("priority", None)
            changes.pop("id", None)
            unknown = sorted(set(changes) - {f.name for f in fields(Rule)})
            if unknown:
                return self._rejected(InvalidRuleError(
                    ErrorMessages.format(ErrorMessages.UNKNOWN_RULE_FIELDS, fields=", ".join(unknown)),
                    {"rule_id": rule_id},
                ))
            updated = replace(current, **changes)
            return await self._apply(
                [updated if r.id == rule_id else r for r in self._rules],
                lambda: self.store.save_rule(updated),
                f"Update of rule {rule_id}",
            )

    async def toggle_rule(self, rule_id: str) -> ReorderResult:
        """Flip the active flag of one rule."""
        async with self._lock:
            current = self.get(rule_id)
            if current is None:
                return self._not_found(rule_id)
            toggled = replace(current, is_active=not current.is_active)
            return await self._apply(
                [toggled if r.id == rule_id else r for r in self._rules],
                lambda: self.store.save_rule(toggled),
                f"Toggle of rule {rule_id}",
            )

    async def remove_rule(self, rule_id: str) -> ReorderResult:
        """Delete one rule and close the gap in priorities."""
        async with self._lock:
            if self.get(rule_id) is None:
                return self._not_found(rule_id)
            remaining = assign_dense_priorities([r for r in self._rules if r.id != rule_id])

            async def persist() -> WriteResult:
                deleted = await self.store.delete_rule(rule_id)
                if deleted.error:
                    return deleted
                if not remaining:
                    return deleted
                return await self.store.update_priorities(
                    PriorityReorderer.priority_updates(remaining)
                )

            return await self._apply(remaining, persist, f"Removal of rule {rule_id}")
