# cargo_billing/core/constants.py

"""
Application-wide constants and enumerations.

Defines rule operators, rate types, standard record column names
and cache keys used throughout the application.
"""

from enum import Enum
from typing import Dict


class Operator(Enum):
    """Operators for rule conditions."""
    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"
    NOT_EMPTY = "not_empty"
    IS_EMPTY = "is_empty"


class RuleLogic(Enum):
    """How the conditions of one rule are combined."""
    AND = "AND"
    OR = "OR"


class RateType(Enum):
    """Supported rate computations."""
    FIXED = "fixed"
    PER_KG = "per_kg"
    MULTIPLIER = "multiplier"


class IngestionStatus(Enum):
    """Status of a batch ingestion run."""
    PREPARING = "preparing"
    SAVING = "saving"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class RuleKind(Enum):
    """The two assignment workflows sharing the rule engine."""
    CUSTOMER = "customer"
    RATE = "rate"


class StandardColumns:
    """
    Standard column names of a stored shipment record.

    These are the normalized names used internally,
    regardless of the spreadsheet layout.
    """

    ID = "id"
    REC_ID = "rec_id"
    INB_FLIGHT_DATE = "inb_flight_date"
    OUTB_FLIGHT_DATE = "outb_flight_date"
    DES_NO = "des_no"
    REC_NUMB = "rec_numb"
    ORIG_OE = "orig_oe"
    DEST_OE = "dest_oe"
    INB_FLIGHT_NO = "inb_flight_no"
    OUTB_FLIGHT_NO = "outb_flight_no"
    MAIL_CAT = "mail_cat"
    MAIL_CLASS = "mail_class"
    TOTAL_KG = "total_kg"
    INVOICE = "invoice"
    CUSTOMER_NAME_NUMBER = "customer_name_number"
    TOTAL_EUR = "total_eur"

    # Assignment columns
    ASSIGNED_CUSTOMER = "assigned_customer"
    ASSIGNED_RATE = "assigned_rate"
    RATE_ID = "rate_id"
    RATE_VALUE = "rate_value"
    RATE_CURRENCY = "rate_currency"
    ASSIGNED_AT = "assigned_at"
    PROCESSED_AT = "processed_at"

    # Maximum stored length of string columns
    MAX_LENGTHS: Dict[str, int] = {
        REC_ID: 100,
        INB_FLIGHT_DATE: 50,
        OUTB_FLIGHT_DATE: 50,
        DES_NO: 20,
        REC_NUMB: 10,
        ORIG_OE: 10,
        DEST_OE: 10,
        INB_FLIGHT_NO: 20,
        OUTB_FLIGHT_NO: 20,
        MAIL_CAT: 5,
        MAIL_CLASS: 10,
        INVOICE: 50,
        CUSTOMER_NAME_NUMBER: 200,
    }


class CacheKeys:
    """Keys and prefixes of the local cache."""

    DATASETS = "cargo-management-datasets"
    CURRENT_SESSION = "cargo-management-session"
    FILE_PREFIX = "cargo-file-storage-"
    COLUMN_MAPPING_PREFIX = "cargo-column-mapping-"


class ErrorMessages:
    """Standard error messages."""

    NO_VALID_RECORDS = "No valid records to save after conversion"
    NO_ROWS = "No rows provided"
    DROP_RATE_EXCEEDED = (
        "{skipped} of {total} rows failed conversion "
        "({rate:.1f}% > {limit:.1f}% allowed)"
    )
    CHUNK_FAILED = "Failed to save batch {batch}: {error}"
    PRIORITY_PERSIST_FAILED = "Failed to update rule priorities: {error}"
    UNKNOWN_RATE_TYPE = "Unknown rate type '{rate_type}' for rate {rate_id}"
    UNKNOWN_OPERATOR = "Unknown operator: {operator}"
    UNKNOWN_LOGIC = "Unknown rule logic: {logic}"
    RULE_NOT_FOUND = "Rule {rule_id} not found"
    UNKNOWN_RULE_FIELDS = "Unknown rule field(s): {fields}"
    INVALID_CHUNK_SIZE = "Chunk size must be at least 1, got {chunk_size}"
    CACHE_WRITE_FAILED = (
        "Local storage is full even after cleanup; "
        "session may not persist across refresh ({error})"
    )

    @classmethod
    def format(cls, message: str, **kwargs) -> str:
        """Format error message with parameters."""
        return message.format(**kwargs)


class DefaultValues:
    """Default values for various fields."""

    DEFAULT_CURRENCY = "EUR"
    DEFAULT_MULTIPLIER = 1.0


__all__ = [
    "Operator",
    "RuleLogic",
    "RateType",
    "IngestionStatus",
    "RuleKind",
    "StandardColumns",
    "CacheKeys",
    "ErrorMessages",
    "DefaultValues",
]
