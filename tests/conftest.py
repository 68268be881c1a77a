"""Shared fixtures: an in-memory record store with failure injection."""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from cargo_billing.core.types import BulkUpdateResult, Record, Rule, WriteResult  # noqa: E402
from cargo_billing.store.base import RecordStore  # noqa: E402


class FakeRecordStore(RecordStore):
    """Records every call; failures are injected per call number."""

    def __init__(self) -> None:
        self.records: Dict[str, Record] = {}
        self.insert_calls: List[List[Record]] = []
        self.update_calls: List[List[Dict[str, Any]]] = []
        self.delete_calls: List[List[str]] = []
        self.priority_calls: List[List[Dict[str, Any]]] = []
        self.saved_rules: List[Rule] = []
        self.deleted_rules: List[str] = []
        self.stats_calls: List[List[Dict[str, Any]]] = []

        self.fail_insert_on: set[int] = set()
        self.raise_insert_on: set[int] = set()
        self.fail_delete_on: set[int] = set()
        self.fail_priorities: Optional[str] = None
        self.raise_priorities: bool = False
        self.fail_save_rule: Optional[str] = None
        self.fail_stats: Optional[str] = None
        self._next_id = 0

    async def bulk_insert(self, records: List[Record]) -> WriteResult:
        call = len(self.insert_calls) + 1
        self.insert_calls.append(list(records))
        if call in self.raise_insert_on:
            raise ConnectionError("store unreachable")
        if call in self.fail_insert_on:
            return WriteResult(error="row limit exceeded")
        for record in records:
            self._next_id += 1
            record_id = record.get("id") or f"r{self._next_id}"
            self.records[record_id] = {**record, "id": record_id}
        return WriteResult()

    async def bulk_update(self, updates: List[Dict[str, Any]]) -> BulkUpdateResult:
        self.update_calls.append(list(updates))
        result = BulkUpdateResult()
        for item in updates:
            if item["id"] not in self.records:
                result.total_failed += 1
                result.errors.append(f"{item['id']}: not found")
                continue
            self.records[item["id"]].update(item["fields"])
            result.total_updated += 1
        return result

    async def delete(self, record_id: str) -> WriteResult:
        if self.records.pop(record_id, None) is None:
            return WriteResult(error=f"Record {record_id} not found")
        return WriteResult()

    async def delete_by_ids(self, ids: List[str]) -> WriteResult:
        call = len(self.delete_calls) + 1
        self.delete_calls.append(list(ids))
        if call in self.fail_delete_on:
            return WriteResult(error="delete rejected")
        for record_id in ids:
            self.records.pop(record_id, None)
        return WriteResult()

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        return sum(
            1 for record in self.records.values()
            if all(record.get(k) == v for k, v in (filters or {}).items())
        )

    async def fetch_unassigned(self, field: str) -> List[Record]:
        return [dict(r) for r in self.records.values() if not r.get(field)]

    async def update_priorities(self, items: List[Dict[str, Any]]) -> WriteResult:
        self.priority_calls.append(list(items))
        if self.raise_priorities:
            raise TimeoutError("priority write timed out")
        if self.fail_priorities:
            return WriteResult(error=self.fail_priorities)
        return WriteResult()

    async def save_rule(self, rule: Rule) -> WriteResult:
        if self.fail_save_rule:
            return WriteResult(error=self.fail_save_rule)
        self.saved_rules.append(rule)
        return WriteResult()

    async def delete_rule(self, rule_id: str) -> WriteResult:
        self.deleted_rules.append(rule_id)
        return WriteResult()

    async def update_rule_stats(self, stats: List[Dict[str, Any]]) -> WriteResult:
        self.stats_calls.append(list(stats))
        if self.fail_stats:
            return WriteResult(error=self.fail_stats)
        return WriteResult()


def make_rule(
    rule_id: str,
    priority: int,
    conditions: Optional[List[Dict[str, Any]]] = None,
    logic: str = "AND",
    target: Optional[str] = None,
    rate_id: Optional[str] = None,
    is_active: bool = True,
) -> Rule:
    return Rule.from_dict({
        "id": rule_id,
        "name": f"Rule {rule_id}",
        "priority": priority,
        "conditions": conditions if conditions is not None else [
            {"field": "orig_oe", "operator": "not_empty", "value": ""}
        ],
        "logic": logic,
        "assignment": {"target_id": target or f"target-{rule_id}", "rate_definition_id": rate_id},
        "is_active": is_active,
    })


@pytest.fixture
def fake_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def rule_factory():
    return make_rule
