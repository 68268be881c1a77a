# cargo_billing/core/exceptions.py

"""
Custom exceptions for the application.

Provides specific exception types for different error scenarios.
Row, chunk, cache and persistence failures are caught by the layer that
owns them and reported as result/error pairs.
"""


class AppException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


# Processing exceptions
class ProcessingError(AppException):
    """Base class for processing errors."""
    pass


class RowConversionError(ProcessingError):
    """A raw imported row could not be converted into a storage record."""
    pass


class RowDropRateExceededError(ProcessingError):
    """Too many rows of one import failed conversion."""
    pass


# Database exceptions
class DatabaseError(AppException):
    """Base class for database errors."""
    pass


class RecordNotFoundError(DatabaseError):
    """Requested record not found in database."""
    pass


class ChunkWriteError(DatabaseError):
    """A chunk of records could not be written to the store."""
    pass


class PriorityPersistError(DatabaseError):
    """Rule priorities could not be persisted after a reorder."""
    pass


# Local cache exceptions
class CacheError(AppException):
    """Base class for local cache errors."""
    pass


class QuotaExceededError(CacheError):
    """Writing to the local cache would exceed its quota."""
    pass


# Configuration exceptions
class ConfigurationError(AppException):
    """Base class for configuration errors."""
    pass


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""
    pass


# Business logic exceptions
class BusinessRuleError(AppException):
    """Base class for business rule violations."""
    pass


class InvalidRuleError(BusinessRuleError):
    """Rule or condition definition is malformed (unknown operator, logic...)."""
    pass


class UnknownRateTypeError(BusinessRuleError):
    """Rate definition carries a rate type the calculator does not know."""
    pass
