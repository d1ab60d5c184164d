"""Custom exception classes for billing, scheduling and ledger operations.

Provides domain-specific exceptions for clear error handling and reporting.
"""


class EstateBillError(Exception):
    """Base exception for estatebill errors."""

    pass


class ValidationError(EstateBillError):
    """Invalid input rejected before it reaches the scheduler or ledger.

    Raised for generation days outside 1-31, unknown periodicities,
    non-positive amounts, empty currency codes and inverted date windows.
    """

    pass


class SchedulingConflict(EstateBillError):
    """Another run already claimed this occurrence (treated as handled)."""

    def __init__(self, definition_id: int, message: str | None = None):
        self.definition_id = definition_id
        super().__init__(message or f"Occurrence already claimed for definition {definition_id}")


class PersistenceError(EstateBillError):
    """Repository I/O failure (connection, constraint violation, timeout)."""

    pass


class DateComputationError(EstateBillError):
    """Next generation date could not be computed for a validated definition."""

    pass


class LedgerError(EstateBillError):
    """Malformed payment or expense record handed to the ledger builder."""

    pass


__all__ = [
    "EstateBillError",
    "ValidationError",
    "SchedulingConflict",
    "PersistenceError",
    "DateComputationError",
    "LedgerError",
]
