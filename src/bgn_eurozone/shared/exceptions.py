"""
Custom exceptions for the eurozone pricing toolkit.

This module contains specialized exception classes for precondition failures
of the currency migration, per-entity conversion problems, and catalog-level
errors that abort a batch.
"""

from typing import Any


class EurozoneError(Exception):
    """Base exception for all eurozone pricing errors."""

    pass


# ================================
# PRECONDITION ERRORS (fail fast, no state change)
# ================================


class PreconditionError(EurozoneError):
    """Exception raised when an operation is not allowed in the current state."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.details = details or {}

        if details:
            detail_str = ", ".join(f"{key}: {value}" for key, value in details.items())
            message = f"{message} ({detail_str})"

        super().__init__(message)


class UnauthorizedError(PreconditionError):
    """Exception raised when the caller may not manage the migration."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class UnsupportedCurrencyError(PreconditionError):
    """Exception raised when the store currency is neither BGN nor EUR."""

    def __init__(self, currency: str | None):
        self.currency = currency
        super().__init__(
            "Store currency is not supported; dual pricing is disabled",
            {"currency": currency or "<unset>"},
        )


class CurrencyMismatchError(PreconditionError):
    """Exception raised when the store currency is not the expected one."""

    def __init__(self, expected: str, actual: str | None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Currency migration is only available when the store currency is {expected}",
            {"expected": expected, "actual": actual or "<unset>"},
        )


class MigrationNotStartedError(PreconditionError):
    """Exception raised when a batch is requested without a started migration."""

    def __init__(self):
        super().__init__("No currency migration is in progress; start one first")


class MigrationAlreadyStartedError(PreconditionError):
    """Exception raised when start is requested while a run is still open."""

    def __init__(self, offset: int, total: int):
        self.offset = offset
        self.total = total
        super().__init__(
            "A currency migration is already in progress; resume or reset it",
            {"offset": offset, "total": total},
        )


class IncompleteMigrationError(PreconditionError):
    """Exception raised by a strict finalize before every entity was processed."""

    def __init__(self, offset: int, total: int):
        self.offset = offset
        self.total = total
        super().__init__(
            "Migration has not processed every product yet",
            {"offset": offset, "total": total},
        )


# ================================
# PER-ENTITY ERRORS (recorded, batch continues)
# ================================


class EntityError(EurozoneError):
    """Exception raised when a single catalog entity cannot be migrated."""

    def __init__(
        self,
        message: str,
        entity_id: int | None = None,
        original_error: Exception | None = None,
    ):
        self.entity_id = entity_id
        self.original_error = original_error

        if original_error:
            message = f"{message} (Original error: {original_error})"

        super().__init__(message)


class EntityNotFoundError(EntityError):
    """Exception raised when a catalog entity could not be loaded."""

    def __init__(self, entity_id: int):
        super().__init__("Product could not be loaded", entity_id)


class InvalidPriceError(EntityError):
    """Exception raised when a price value is not a finite decimal number."""

    def __init__(self, value: Any, entity_id: int | None = None):
        self.invalid_value = value
        super().__init__(f"Invalid price value: {value!r}", entity_id)


# ================================
# CATALOG ERRORS (fatal to a batch invocation)
# ================================


class CatalogError(EurozoneError):
    """Exception raised when the catalog itself cannot be read or written."""

    def __init__(self, message: str, original_error: Exception | None = None):
        self.original_error = original_error

        if original_error:
            message = f"{message} (Original error: {original_error})"

        super().__init__(message)
