"""
Exception types for the finance tracker.

Parse errors abort a batch; row validation and persistence errors are
captured into result structures and never reach the caller as exceptions.
"""

from typing import Optional


class FinanceTrackerError(Exception):
    """Base class for all finance tracker errors."""


class ParseError(FinanceTrackerError):
    """An uploaded file could not be read as tabular data."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.filename = filename

    def __str__(self) -> str:
        if self.filename:
            return f"{self.filename}: {self.message}"
        return self.message


class RowValidationError(FinanceTrackerError):
    """A single record failed a business rule."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PersistenceError(FinanceTrackerError):
    """The store rejected or could not write one record."""


class SchemaViolationError(PersistenceError):
    """The document does not satisfy the store's own schema."""


class PersistenceTimeoutError(PersistenceError):
    """An insert did not complete within the configured timeout."""


class StoreUnavailableError(FinanceTrackerError):
    """The store as a whole cannot be opened or written."""


class TransportError(FinanceTrackerError):
    """A request to the bulk endpoint failed before a response arrived."""
