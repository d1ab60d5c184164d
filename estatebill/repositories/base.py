"""Repository interfaces consumed by the billing scheduler and ledger service.

Implementations decide how rows are stored; the core only relies on the
contracts below. The SQLAlchemy adapter lives in estatebill.repositories.orm.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional, Sequence


class RecurringBillingRepository(ABC):
    """Storage of recurring billing definitions."""

    @abstractmethod
    def get(self, definition_id: int):
        """Definition by id, or None."""

    @abstractmethod
    def add(self, definition):
        """Persist a new definition and return it with its id assigned."""

    @abstractmethod
    def list_definitions(self, billing_type=None, active_only: bool = False) -> Sequence:
        """Definitions ordered by next generation date."""

    @abstractmethod
    def list_active_due(self, before: datetime) -> Sequence:
        """Active, unflagged definitions whose next generation date is <= before."""

    @abstractmethod
    def claim_and_advance(
        self, definition_id: int, expected_next_date: datetime, new_next_date: datetime
    ) -> bool:
        """Atomically move next_generation_date from expected to new.

        Returns:
            False if the stored date no longer equals expected_next_date
            (another run already claimed this occurrence) or the definition
            was deactivated meanwhile
        """

    @abstractmethod
    def mark_generated(self, definition_id: int, generated_at: datetime) -> None:
        """Record when the last invoice was generated."""

    @abstractmethod
    def flag_for_review(self, definition_id: int, reason: str) -> None:
        """Exclude the definition from due checks until a user reviews it."""


class InvoiceRepository(ABC):
    """Creation of invoices from recurring definitions."""

    @abstractmethod
    def create_from_definition(
        self,
        definition,
        amount_in_words: str,
        occurrence_date: datetime,
        invoice_date: date,
    ):
        """Materialize a pending invoice for one occurrence of a definition.

        Raises:
            SchedulingConflict: If the occurrence already has an invoice;
                earlier changes in the same unit of work are kept
            PersistenceError: On storage failure
        """


class PaymentRepository(ABC):
    @abstractmethod
    def list_by_property_and_range(self, property_id: int, start: date, end: date) -> Sequence:
        """Payments for a property with start <= payment_date <= end, ordered by date then id."""


class ExpenseRepository(ABC):
    @abstractmethod
    def list_by_property_and_range(self, property_id: int, start: date, end: date) -> Sequence:
        """Expenses for a property with start <= expense_date <= end, ordered by date then id."""


class NotificationSink(ABC):
    """Fire-and-forget notification channel."""

    @abstractmethod
    def emit(
        self,
        kind: str,
        title: str,
        message: str,
        reference_id: Optional[int],
        reference_type: Optional[str] = None,
    ) -> None:
        """Publish one notification."""


class PropertyDirectory(ABC):
    @abstractmethod
    def property_name(self, property_id: int) -> Optional[str]:
        """Display name of a property, or None if unknown."""


class AuditTrail(ABC):
    @abstractmethod
    def record(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: Optional[int] = None,
        changes: Optional[dict] = None,
    ) -> None:
        """Append an audit entry."""


class UnitOfWork(ABC):
    """Repositories sharing one transaction.

    Used as a context manager: commits when the block exits normally and
    rolls back when it raises.
    """

    billings: RecurringBillingRepository
    invoices: InvoiceRepository
    payments: PaymentRepository
    expenses: ExpenseRepository
    notifications: NotificationSink
    properties: PropertyDirectory
    audit: AuditTrail

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self.close()
        return False

    @abstractmethod
    def commit(self) -> None:
        """Make the changes of this unit of work durable."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard the changes of this unit of work."""

    def close(self) -> None:
        """Release resources held by this unit of work."""


__all__ = [
    "AuditTrail",
    "ExpenseRepository",
    "InvoiceRepository",
    "NotificationSink",
    "PaymentRepository",
    "PropertyDirectory",
    "RecurringBillingRepository",
    "UnitOfWork",
]
