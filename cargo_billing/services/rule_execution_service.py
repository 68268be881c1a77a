# cargo_billing/services/rule_execution_service.py

"""
Executes a rule list over shipment records and writes the assignments.

Used by both workflows: customer rules fill ``assigned_customer``, rate
rules fill ``rate_id`` / ``rate_value`` / ``rate_currency``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from cargo_billing.core.config import Config
from cargo_billing.core.constants import DefaultValues, StandardColumns
from cargo_billing.core.logging import time_operation
from cargo_billing.core.types import (
    AssignmentResult, RateDefinition, Record, Rule, RuleExecutionSummary, RuleMatchSummary
)
from cargo_billing.rules.resolver import RuleResolver, index_rates, sort_by_priority
from cargo_billing.store.base import RecordStore

logger = logging.getLogger(__name__)

RateSource = Union[Mapping[str, RateDefinition], Iterable[RateDefinition]]


class RuleExecutionService:
    """Resolve, aggregate and persist rule assignments."""

    def __init__(self, store: RecordStore, batch_size: Optional[int] = None):
        self.store = store
        self.batch_size = batch_size or Config.ingestion.UPDATE_BATCH_SIZE

    # ------------------------------------------------------------
    # Update building
    # ------------------------------------------------------------

    @staticmethod
    def _customer_fields(result: AssignmentResult, assigned_at: str) -> Dict[str, Any]:
        return {
            StandardColumns.ASSIGNED_CUSTOMER: result.target_id,
            StandardColumns.ASSIGNED_AT: assigned_at,
        }

    @staticmethod
    def _rate_fields(
        result: AssignmentResult,
        rates: Mapping[str, RateDefinition],
        assigned_at: str,
    ) -> Dict[str, Any]:
        rate_id = result.rate_definition_id or result.target_id
        rate = rates.get(rate_id)
        if result.error is not None:
            # Matched but not computable: flag for manual rate entry
            return {
                StandardColumns.RATE_ID: rate_id,
                StandardColumns.RATE_VALUE: None,
                StandardColumns.RATE_CURRENCY: None,
                StandardColumns.ASSIGNED_AT: assigned_at,
            }
        return {
            StandardColumns.RATE_ID: rate_id,
            StandardColumns.RATE_VALUE: result.computed_value,
            StandardColumns.RATE_CURRENCY: rate.currency if rate else DefaultValues.DEFAULT_CURRENCY,
            StandardColumns.ASSIGNED_AT: assigned_at,
        }

    # ------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------

    async def execute(
        self,
        records: Sequence[Record],
        rules: Sequence[Rule],
        rates: Optional[RateSource] = None,
        dry_run: bool = False,
        field: str = StandardColumns.ASSIGNED_CUSTOMER,
    ) -> RuleExecutionSummary:
        """
        Execute rules over records.

        Args:
            records: Records to process (each needs an "id")
            rules: Rule list; inactive rules never match
            rates: Rate definitions, by id or as a list (rate workflow)
            dry_run: Resolve and count without writing anything
            field: Assignment field; anything other than assigned_customer
                selects the rate workflow

        Returns:
            RuleExecutionSummary with per-rule match counts
        """
        summary = RuleExecutionSummary(dry_run=dry_run)
        is_customer = field == StandardColumns.ASSIGNED_CUSTOMER
        rate_index: Dict[str, RateDefinition] = {}
        if rates is not None:
            rate_index = dict(rates) if isinstance(rates, Mapping) else index_rates(rates)

        ordered = sort_by_priority(rules)
        per_rule = {
            rule.id: RuleMatchSummary(rule_id=rule.id, rule_name=rule.name)
            for rule in ordered if rule.is_active
        }
        assigned_at = datetime.now(timezone.utc).isoformat()
        updates: List[Dict[str, Any]] = []

        with time_operation(f"Executing {len(ordered)} rules on {len(records)} records", logger):
            for record in records:
                summary.total_processed += 1
                result = RuleResolver.resolve(
                    record, ordered, rate_index if not is_customer else None
                )
                if not result.is_assigned or (is_customer and not result.target_id):
                    summary.total_skipped += 1
                    continue

                record_id = record.get(StandardColumns.ID)
                match = per_rule[result.matched_rule_id]
                match.matches += 1
                if record_id is not None:
                    match.record_ids.append(record_id)
                summary.total_assigned += 1
                if result.needs_manual_rate:
                    summary.needs_manual_rate += 1

                if record_id is None:
                    summary.errors.append(f"Record {record.get(StandardColumns.REC_ID)} has no id")
                    continue
                fields = (
                    self._customer_fields(result, assigned_at) if is_customer
                    else self._rate_fields(result, rate_index, assigned_at)
                )
                updates.append({"id": record_id, "fields": fields})

        summary.rule_results = [m for m in per_rule.values() if m.matches > 0]
        logger.info(
            f"📋 {summary.total_assigned}/{summary.total_processed} records matched "
            f"({summary.total_skipped} unmatched, {summary.needs_manual_rate} need a manual rate)"
        )

        if dry_run:
            logger.info("🔹 Dry run: no updates written")
            summary.mark_completed()
            return summary

        await self._write_updates(updates, summary)
        await self._record_stats(summary.rule_results)
        summary.mark_completed()
        return summary

    async def _write_updates(self, updates: List[Dict[str, Any]], summary: RuleExecutionSummary):
        for start in range(0, len(updates), self.batch_size):
            batch = updates[start:start + self.batch_size]
            try:
                outcome = await self.store.bulk_update(batch)
            except Exception as e:
                logger.error(f"❌ Update batch starting at {start} failed: {e}")
                summary.errors.append(str(e))
                continue
            summary.total_updated += outcome.total_updated
            summary.errors.extend(outcome.errors)
        logger.info(f"✅ Updated {summary.total_updated}/{len(updates)} records")

    async def _record_stats(self, results: List[RuleMatchSummary]):
        if not results:
            return
        last_run = datetime.now(timezone.utc).isoformat()
        stats = [
            {"id": r.rule_id, "match_count": r.matches, "last_run": last_run}
            for r in results
        ]
        try:
            outcome = await self.store.update_rule_stats(stats)
        except Exception as e:
            logger.warning(f"⚠️ Could not update rule statistics: {e}")
            return
        if outcome.error:
            logger.warning(f"⚠️ Could not update rule statistics: {outcome.error}")
