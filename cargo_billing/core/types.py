# cargo_billing/core/types.py

"""
Type definitions and data classes for the application.

Provides structured data types for passing data between components,
replacing ad-hoc dictionaries with typed objects.
"""

import math
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .constants import ErrorMessages, IngestionStatus, Operator, RuleLogic
from .exceptions import InvalidRuleError

# One shipment line, as read from or written to the store
Record = Dict[str, Any]

# One raw spreadsheet row, already column-mapped
RawRow = Dict[str, Any]


@dataclass(frozen=True)
class Condition:
    """A single field test of a rule."""

    field: str
    operator: Operator
    value: str = ""
    value2: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        """Build a condition, rejecting unknown operators."""
        raw_operator = data.get("operator")
        try:
            operator = raw_operator if isinstance(raw_operator, Operator) else Operator(raw_operator)
        except ValueError:
            raise InvalidRuleError(
                ErrorMessages.format(ErrorMessages.UNKNOWN_OPERATOR, operator=raw_operator),
                {"condition": data},
            )

        value2 = data.get("value2")
        return cls(
            field=str(data.get("field", "")),
            operator=operator,
            value="" if data.get("value") is None else str(data.get("value")),
            value2=None if value2 is None else str(value2),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        result = {
            "field": self.field,
            "operator": self.operator.value,
            "value": self.value,
        }
        if self.value2 is not None:
            result["value2"] = self.value2
        return result


@dataclass(frozen=True)
class Assignment:
    """What a matching rule assigns: a customer, or a rate definition."""

    target_id: Optional[str]
    rate_definition_id: Optional[str] = None


@dataclass(frozen=True)
class Rule:
    """Conditional, prioritized assignment rule."""

    id: str
    name: str
    priority: int
    conditions: Tuple[Condition, ...] = ()
    logic: RuleLogic = RuleLogic.AND
    assignment: Assignment = Assignment(target_id=None)
    is_active: bool = True
    description: Optional[str] = None
    match_count: int = 0
    last_run: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """
        Build a rule from a stored/serialized mapping.

        Accepts both snake_case and camelCase keys for the active flag and
        the assignment target. Unknown operators or logic raise InvalidRuleError.
        """
        raw_logic = data.get("logic") or RuleLogic.AND.value
        try:
            logic = raw_logic if isinstance(raw_logic, RuleLogic) else RuleLogic(str(raw_logic).upper())
        except ValueError:
            raise InvalidRuleError(
                ErrorMessages.format(ErrorMessages.UNKNOWN_LOGIC, logic=raw_logic),
                {"rule_id": data.get("id")},
            )

        assignment = data.get("assignment") or {}
        if isinstance(assignment, Assignment):
            target = assignment
        else:
            target = Assignment(
                target_id=assignment.get("target_id", assignment.get("targetId")),
                rate_definition_id=assignment.get(
                    "rate_definition_id", assignment.get("rateDefinitionId")
                ),
            )

        is_active = data.get("is_active", data.get("isActive", True))
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            priority=int(data.get("priority", 0)),
            conditions=tuple(
                c if isinstance(c, Condition) else Condition.from_dict(c)
                for c in data.get("conditions") or []
            ),
            logic=logic,
            assignment=target,
            is_active=bool(is_active),
            description=data.get("description"),
            match_count=int(data.get("match_count") or 0),
            last_run=data.get("last_run"),
        )

    def with_priority(self, priority: int) -> "Rule":
        """Return a copy of the rule carrying a new priority."""
        return replace(self, priority=priority)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "priority": self.priority,
            "conditions": [c.to_dict() for c in self.conditions],
            "logic": self.logic.value,
            "assignment": {
                "target_id": self.assignment.target_id,
                "rate_definition_id": self.assignment.rate_definition_id,
            },
            "is_active": self.is_active,
            "description": self.description,
            "match_count": self.match_count,
            "last_run": self.last_run,
        }


@dataclass(frozen=True)
class RateDefinition:
    """How the monetary value of an assigned rate is computed."""

    id: str
    rate_type: str
    base_rate: Optional[float]
    multiplier: Optional[float] = None
    currency: str = "EUR"
    name: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class AssignmentResult:
    """Outcome of resolving one record against a rule list."""

    matched_rule_id: Optional[str]
    target_id: Optional[str]
    computed_value: float = 0.0
    rate_definition_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def unassigned(cls) -> "AssignmentResult":
        """No active rule matched."""
        return cls(matched_rule_id=None, target_id=None)

    @property
    def is_assigned(self) -> bool:
        return self.matched_rule_id is not None

    @property
    def needs_manual_rate(self) -> bool:
        """Matched, but the rate could not be computed."""
        return self.is_assigned and self.error is not None


@dataclass
class IngestionBatch:
    """Converted records of one import, split into store round-trips."""

    records: List[Record]
    chunk_size: int
    total_chunks: int = 0

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        self.total_chunks = math.ceil(len(self.records) / self.chunk_size)

    def chunks(self) -> Iterator[List[Record]]:
        """Yield chunks in submission order."""
        for start in range(0, len(self.records), self.chunk_size):
            yield self.records[start:start + self.chunk_size]


@dataclass(frozen=True)
class IngestionProgress:
    """One progress event of a batch ingestion run."""

    percentage: int
    current_count: int
    total_count: int
    current_batch: int
    total_batches: int
    status: IngestionStatus

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "percentage": self.percentage,
            "currentCount": self.current_count,
            "totalCount": self.total_count,
            "currentBatch": self.current_batch,
            "totalBatches": self.total_batches,
            "status": self.status.value,
        }


@dataclass
class IngestionResult:
    """Final outcome of a batch ingestion run."""

    saved_count: int = 0
    total_count: int = 0
    skipped_rows: int = 0
    status: IngestionStatus = IngestionStatus.PREPARING
    error: Optional[str] = None
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return self.status == IngestionStatus.COMPLETED

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "savedCount": self.saved_count,
            "totalCount": self.total_count,
            "skippedRows": self.skipped_rows,
            "status": self.status.value,
            "error": self.error,
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True)
class CleanupStrategy:
    """One step of the progressive cache cleanup; execute() returns items removed."""

    name: str
    description: str
    execute: Callable[[], int]


@dataclass(frozen=True)
class QuotaInfo:
    """Snapshot of local cache usage."""

    used_bytes: int
    available_bytes: int
    percentage: float
    is_near_limit: bool
    is_full: bool


@dataclass
class CleanupResult:
    """Outcome of a progressive cleanup pass."""

    success: bool
    strategies_used: List[str] = field(default_factory=list)
    total_items_removed: int = 0


@dataclass(frozen=True)
class SetItemResult:
    """Outcome of a quota-aware cache write."""

    success: bool
    error: Optional[str] = None
    cleanup_performed: bool = False


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a store write; error is None on success."""

    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BulkUpdateResult:
    """Per-item outcome of a bulk update."""

    total_updated: int = 0
    total_failed: int = 0
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReorderResult:
    """Rule list after an optimistic reorder and its persistence outcome."""

    rules: Tuple[Rule, ...]
    persisted: bool
    error: Optional[str] = None


@dataclass
class BulkDeleteResult:
    """Outcome of a batched delete."""

    deleted_count: int = 0
    failed_count: int = 0
    cancelled: bool = False
    error: Optional[str] = None


@dataclass
class RuleMatchSummary:
    """Matches produced by one rule during an execution run."""

    rule_id: str
    rule_name: str
    matches: int = 0
    record_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "ruleId": self.rule_id,
            "ruleName": self.rule_name,
            "matches": self.matches,
        }


@dataclass
class RuleExecutionSummary:
    """Result of executing a rule list over a set of records."""

    total_processed: int = 0
    total_assigned: int = 0
    total_skipped: int = 0
    needs_manual_rate: int = 0
    total_updated: int = 0
    dry_run: bool = False
    rule_results: List[RuleMatchSummary] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def mark_completed(self):
        """Mark the run as completed."""
        self.completed_at = datetime.now()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "totalProcessed": self.total_processed,
            "totalAssigned": self.total_assigned,
            "totalSkipped": self.total_skipped,
            "needsManualRate": self.needs_manual_rate,
            "totalUpdated": self.total_updated,
            "dryRun": self.dry_run,
            "ruleResults": [r.to_dict() for r in self.rule_results],
            "errors": list(self.errors),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
