# cargo_billing/store/base.py

"""
Contract of the persistent record store.

Any backing store qualifies as long as every write reports failure through
its return value (WriteResult / BulkUpdateResult) instead of raising.
Reads raise DatabaseError.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from cargo_billing.core.types import BulkUpdateResult, Record, Rule, WriteResult


class RecordStore(ABC):
    """Key-addressable record store with bulk operations."""

    # Shipment records

    @abstractmethod
    async def bulk_insert(self, records: List[Record]) -> WriteResult:
        """Insert records in one round-trip."""

    @abstractmethod
    async def bulk_update(self, updates: List[Dict[str, Any]]) -> BulkUpdateResult:
        """Apply [{"id": ..., "fields": {...}}] updates item by item."""

    @abstractmethod
    async def delete(self, record_id: str) -> WriteResult:
        """Delete one record."""

    @abstractmethod
    async def delete_by_ids(self, ids: List[str]) -> WriteResult:
        """Delete several records in one round-trip."""

    @abstractmethod
    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records whose fields equal the given values."""

    @abstractmethod
    async def fetch_unassigned(self, field: str) -> List[Record]:
        """Records whose assignment field is null or empty."""

    # Rule lists

    @abstractmethod
    async def update_priorities(self, items: List[Dict[str, Any]]) -> WriteResult:
        """Persist [{"id": ..., "priority": ...}] for a whole rule list."""

    @abstractmethod
    async def save_rule(self, rule: Rule) -> WriteResult:
        """Insert or update one rule."""

    @abstractmethod
    async def delete_rule(self, rule_id: str) -> WriteResult:
        """Delete one rule."""

    @abstractmethod
    async def update_rule_stats(self, stats: List[Dict[str, Any]]) -> WriteResult:
        """Persist [{"id", "match_count", "last_run"}] after an execution run."""
