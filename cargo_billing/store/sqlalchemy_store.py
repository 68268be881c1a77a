# cargo_billing/store/sqlalchemy_store.py

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from cargo_billing.core.constants import RuleKind
from cargo_billing.core.exceptions import DatabaseError, RecordNotFoundError
from cargo_billing.core.types import (
    Assignment, BulkUpdateResult, RateDefinition, Record, Rule, WriteResult
)
from cargo_billing.models import CargoRecord, CustomerRule, Rate, RateRule
from cargo_billing.services.database_service import DatabaseService
from .base import RecordStore

logger = logging.getLogger(__name__)

# Offset of the temporary priorities used while rewriting a rule list
_TEMP_PRIORITY_OFFSET = 1000


class SqlAlchemyRecordStore(RecordStore):
    """
    RecordStore over the cargo_data table and one rule table.

    The rule table is customer_rules or rate_rules depending on the
    workflow (RuleKind) this store serves.
    """

    def __init__(self, db_service: DatabaseService, kind: RuleKind = RuleKind.CUSTOMER):
        self.db = db_service
        self.kind = kind
        self.rule_model: Type = CustomerRule if kind == RuleKind.CUSTOMER else RateRule
        self._record_columns = set(CargoRecord.__table__.columns.keys())

    # ------------------------------------------------------------
    # Shipment records
    # ------------------------------------------------------------

    async def bulk_insert(self, records: List[Record]) -> WriteResult:
        try:
            async with self.db.get_session() as session:
                session.add_all([
                    CargoRecord(**{k: v for k, v in record.items() if k in self._record_columns})
                    for record in records
                ])
        except SQLAlchemyError as e:
            logger.error(f"❌ Bulk insert of {len(records)} records failed: {e}")
            return WriteResult(error=str(e))
        return WriteResult()

    async def bulk_update(self, updates: List[Dict[str, Any]]) -> BulkUpdateResult:
        result = BulkUpdateResult()
        for item in updates:
            record_id = item.get("id")
            fields = {
                k: v for k, v in (item.get("fields") or {}).items()
                if k in self._record_columns and k != "id"
            }
            try:
                async with self.db.get_session() as session:
                    outcome = await session.execute(
                        update(CargoRecord).where(CargoRecord.id == record_id).values(**fields)
                    )
                    if outcome.rowcount == 0:
                        raise RecordNotFoundError(f"Record {record_id} not found")
                result.total_updated += 1
            except (SQLAlchemyError, RecordNotFoundError) as e:
                result.total_failed += 1
                result.errors.append(f"{record_id}: {e}")
                logger.warning(f"⚠️ Update of record {record_id} failed: {e}")
        return result

    async def delete(self, record_id: str) -> WriteResult:
        try:
            async with self.db.get_session() as session:
                outcome = await session.execute(
                    delete(CargoRecord).where(CargoRecord.id == record_id)
                )
                if outcome.rowcount == 0:
                    return WriteResult(error=f"Record {record_id} not found")
        except SQLAlchemyError as e:
            logger.error(f"❌ Delete of record {record_id} failed: {e}")
            return WriteResult(error=str(e))
        return WriteResult()

    async def delete_by_ids(self, ids: List[str]) -> WriteResult:
        if not ids:
            return WriteResult()
        try:
            async with self.db.get_session() as session:
                await session.execute(delete(CargoRecord).where(CargoRecord.id.in_(ids)))
        except SQLAlchemyError as e:
            logger.error(f"❌ Delete of {len(ids)} records failed: {e}")
            return WriteResult(error=str(e))
        return WriteResult()

    def _record_column(self, name: str):
        if name not in self._record_columns:
            raise DatabaseError(f"Unknown record column: {name}", {"column": name})
        return getattr(CargoRecord, name)

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        query = select(func.count()).select_from(CargoRecord)
        for column_name, value in (filters or {}).items():
            column = self._record_column(column_name)
            query = query.where(column.is_(None) if value is None else column == value)
        try:
            async with self.db.get_session() as session:
                return (await session.execute(query)).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"❌ Record count failed: {e}")
            raise DatabaseError(f"Record count failed: {e}") from e

    async def fetch_unassigned(self, field: str) -> List[Record]:
        column = self._record_column(field)
        query = (
            select(CargoRecord)
            .where(or_(column.is_(None), column == ""))
            .order_by(CargoRecord.created_at, CargoRecord.rec_id)
        )
        try:
            async with self.db.get_session() as session:
                rows = (await session.execute(query)).scalars().all()
                return [row.to_record() for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"❌ Fetching unassigned records failed: {e}")
            raise DatabaseError(f"Fetching unassigned records failed: {e}") from e

    # ------------------------------------------------------------
    # Rule lists
    # ------------------------------------------------------------

    async def update_priorities(self, items: List[Dict[str, Any]]) -> WriteResult:
        """
        Rewrite priorities in two phases inside one transaction.

        Phase 1 parks every rule on a temporary negative priority so the
        unique priority constraint never sees two rules on the same value.
        """
        model = self.rule_model
        try:
            async with self.db.get_session() as session:
                for index, item in enumerate(items):
                    outcome = await session.execute(
                        update(model)
                        .where(model.id == item["id"])
                        .values(priority=-(index + _TEMP_PRIORITY_OFFSET))
                    )
                    if outcome.rowcount == 0:
                        raise RecordNotFoundError(f"Rule {item['id']} not found")
                for item in items:
                    await session.execute(
                        update(model).where(model.id == item["id"]).values(priority=item["priority"])
                    )
        except (SQLAlchemyError, RecordNotFoundError) as e:
            logger.error(f"❌ Priority update of {len(items)} rules failed: {e}")
            return WriteResult(error=str(e))
        return WriteResult()

    async def save_rule(self, rule: Rule) -> WriteResult:
        try:
            async with self.db.get_session() as session:
                await session.merge(self._rule_to_row(rule))
        except SQLAlchemyError as e:
            logger.error(f"❌ Saving rule {rule.id} failed: {e}")
            return WriteResult(error=str(e))
        return WriteResult()

    async def delete_rule(self, rule_id: str) -> WriteResult:
        model = self.rule_model
        try:
            async with self.db.get_session() as session:
                outcome = await session.execute(delete(model).where(model.id == rule_id))
                if outcome.rowcount == 0:
                    return WriteResult(error=f"Rule {rule_id} not found")
        except SQLAlchemyError as e:
            logger.error(f"❌ Deleting rule {rule_id} failed: {e}")
            return WriteResult(error=str(e))
        return WriteResult()

    async def update_rule_stats(self, stats: List[Dict[str, Any]]) -> WriteResult:
        model = self.rule_model
        try:
            async with self.db.get_session() as session:
                for item in stats:
                    last_run = item.get("last_run")
                    if isinstance(last_run, str):
                        last_run = datetime.fromisoformat(last_run)
                    await session.execute(
                        update(model)
                        .where(model.id == item["id"])
                        .values(match_count=item["match_count"], last_run=last_run)
                    )
        except SQLAlchemyError as e:
            logger.error(f"❌ Rule statistics update failed: {e}")
            return WriteResult(error=str(e))
        return WriteResult()

    async def load_rules(self, active_only: bool = False) -> List[Rule]:
        """Fetch the rule list ordered by priority."""
        model = self.rule_model
        query = select(model).order_by(model.priority.asc())
        if active_only:
            query = query.where(model.is_active.is_(True))
        async with self.db.get_session() as session:
            rows = (await session.execute(query)).scalars().all()
            return [self._row_to_rule(row) for row in rows]

    async def load_rates(self) -> List[RateDefinition]:
        """Fetch active rate definitions."""
        async with self.db.get_session() as session:
            rows = (await session.execute(select(Rate).where(Rate.is_active.is_(True)))).scalars().all()
            return [
                RateDefinition(
                    id=row.id,
                    rate_type=row.rate_type,
                    base_rate=row.base_rate,
                    multiplier=row.multiplier,
                    currency=row.currency,
                    name=row.name,
                )
                for row in rows
            ]

    # ------------------------------------------------------------
    # Mapping helpers
    # ------------------------------------------------------------

    def _row_to_rule(self, row) -> Rule:
        target = row.assign_to if self.kind == RuleKind.CUSTOMER else row.rate_id
        return Rule.from_dict({
            "id": row.id,
            "name": row.name,
            "description": row.description,
            "is_active": row.is_active,
            "priority": row.priority,
            "conditions": row.conditions or [],
            "logic": row.logic,
            "assignment": Assignment(
                target_id=target,
                rate_definition_id=row.rate_id if self.kind == RuleKind.RATE else None,
            ),
            "match_count": row.match_count,
            "last_run": row.last_run.isoformat() if row.last_run else None,
        })

    def _rule_to_row(self, rule: Rule):
        values = {
            "id": rule.id,
            "name": rule.name,
            "description": rule.description,
            "is_active": rule.is_active,
            "priority": rule.priority,
            "conditions": [c.to_dict() for c in rule.conditions],
            "logic": rule.logic.value,
            "match_count": rule.match_count,
        }
        if self.kind == RuleKind.CUSTOMER:
            values["assign_to"] = rule.assignment.target_id
        else:
            values["rate_id"] = rule.assignment.rate_definition_id or rule.assignment.target_id
        return self.rule_model(**values)
