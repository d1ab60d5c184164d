"""SQLAlchemy implementations of the repository interfaces.

Repositories never commit; the unit of work owns the transaction.
SQLAlchemyError raised by a repository call surfaces as PersistenceError.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from estatebill.errors import PersistenceError, SchedulingConflict
from estatebill.models import (
    AuditLog,
    Expense,
    Invoice,
    InvoiceStatus,
    Notification,
    Payment,
    Property,
    RecurringBillingDefinition,
)
from estatebill.models.types import utcnow
from estatebill.repositories.base import (
    AuditTrail,
    ExpenseRepository,
    InvoiceRepository,
    NotificationSink,
    PaymentRepository,
    PropertyDirectory,
    RecurringBillingRepository,
    UnitOfWork,
)

logger = logging.getLogger(__name__)


@contextmanager
def _persistence(operation: str):
    try:
        yield
    except SQLAlchemyError as e:
        raise PersistenceError(f"{operation} failed: {e}") from e


def invoice_number_for(prefix: str, definition_id: int, occurrence_date: datetime) -> str:
    """Invoice number derived from the occurrence, e.g. INV-20250201-7."""
    return f"{prefix}-{occurrence_date.strftime('%Y%m%d')}-{definition_id}"


class SqlAlchemyRecurringBillingRepository(RecurringBillingRepository):
    def __init__(self, session: Session):
        self.session = session

    def get(self, definition_id: int) -> Optional[RecurringBillingDefinition]:
        with _persistence(f"Loading recurring billing {definition_id}"):
            return self.session.get(RecurringBillingDefinition, definition_id)

    def add(self, definition: RecurringBillingDefinition) -> RecurringBillingDefinition:
        with _persistence("Saving recurring billing"):
            self.session.add(definition)
            self.session.flush()
        return definition

    def list_definitions(self, billing_type=None, active_only: bool = False):
        stmt = select(RecurringBillingDefinition)
        if billing_type is not None:
            stmt = stmt.where(RecurringBillingDefinition.billing_type == billing_type)
        if active_only:
            stmt = stmt.where(RecurringBillingDefinition.is_active.is_(True))
        stmt = stmt.order_by(
            RecurringBillingDefinition.next_generation_date, RecurringBillingDefinition.id
        )
        with _persistence("Listing recurring billings"):
            return self.session.execute(stmt).scalars().all()

    def list_active_due(self, before: datetime) -> Sequence[RecurringBillingDefinition]:
        stmt = (
            select(RecurringBillingDefinition)
            .where(
                RecurringBillingDefinition.is_active.is_(True),
                RecurringBillingDefinition.needs_review.is_(False),
                RecurringBillingDefinition.next_generation_date <= before,
            )
            .order_by(RecurringBillingDefinition.next_generation_date, RecurringBillingDefinition.id)
        )
        with _persistence("Listing due recurring billings"):
            return self.session.execute(stmt).scalars().all()

    def claim_and_advance(
        self, definition_id: int, expected_next_date: datetime, new_next_date: datetime
    ) -> bool:
        # Single conditional UPDATE: only one concurrent caller can match the expected date
        stmt = (
            update(RecurringBillingDefinition)
            .where(
                RecurringBillingDefinition.id == definition_id,
                RecurringBillingDefinition.is_active.is_(True),
                RecurringBillingDefinition.next_generation_date == expected_next_date,
            )
            .values(next_generation_date=new_next_date, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with _persistence(f"Claiming recurring billing {definition_id}"):
            result = self.session.execute(stmt)
        return result.rowcount == 1

    def mark_generated(self, definition_id: int, generated_at: datetime) -> None:
        stmt = (
            update(RecurringBillingDefinition)
            .where(RecurringBillingDefinition.id == definition_id)
            .values(last_generated_at=generated_at)
            .execution_options(synchronize_session=False)
        )
        with _persistence(f"Marking recurring billing {definition_id} generated"):
            self.session.execute(stmt)

    def flag_for_review(self, definition_id: int, reason: str) -> None:
        stmt = (
            update(RecurringBillingDefinition)
            .where(RecurringBillingDefinition.id == definition_id)
            .values(needs_review=True, review_reason=reason[:500], updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        with _persistence(f"Flagging recurring billing {definition_id}"):
            self.session.execute(stmt)


class SqlAlchemyInvoiceRepository(InvoiceRepository):
    def __init__(self, session: Session, number_prefix: str = "INV", due_days: int = 30):
        self.session = session
        self.number_prefix = number_prefix
        self.due_days = due_days

    def create_from_definition(
        self,
        definition: RecurringBillingDefinition,
        amount_in_words: str,
        occurrence_date: datetime,
        invoice_date: date,
    ) -> Invoice:
        invoice = Invoice(
            billing_type=definition.billing_type,
            subject_id=definition.subject_id,
            property_id=definition.property_id,
            recurring_billing_id=definition.id,
            occurrence_date=occurrence_date,
            invoice_number=invoice_number_for(self.number_prefix, definition.id, occurrence_date),
            invoice_date=invoice_date,
            due_date=invoice_date + timedelta(days=self.due_days),
            amount=definition.amount,
            currency=definition.currency,
            description=definition.description,
            amount_in_words=amount_in_words,
            status=InvoiceStatus.PENDING,
        )
        # Savepoint: a duplicate occurrence must not roll back the caller's claim
        try:
            with self.session.begin_nested():
                self.session.add(invoice)
                self.session.flush()
        except IntegrityError as e:
            raise SchedulingConflict(
                definition.id,
                f"Invoice for definition {definition.id} occurrence "
                f"{occurrence_date.isoformat()} already exists",
            ) from e
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Creating invoice for definition {definition.id} failed: {e}"
            ) from e
        return invoice


class SqlAlchemyPaymentRepository(PaymentRepository):
    def __init__(self, session: Session):
        self.session = session

    def list_by_property_and_range(self, property_id: int, start: date, end: date):
        stmt = (
            select(Payment)
            .where(
                Payment.property_id == property_id,
                Payment.payment_date >= start,
                Payment.payment_date <= end,
            )
            .order_by(Payment.payment_date, Payment.id)
        )
        with _persistence(f"Listing payments for property {property_id}"):
            return self.session.execute(stmt).scalars().all()


class SqlAlchemyExpenseRepository(ExpenseRepository):
    def __init__(self, session: Session):
        self.session = session

    def list_by_property_and_range(self, property_id: int, start: date, end: date):
        stmt = (
            select(Expense)
            .where(
                Expense.property_id == property_id,
                Expense.expense_date >= start,
                Expense.expense_date <= end,
            )
            .order_by(Expense.expense_date, Expense.id)
        )
        with _persistence(f"Listing expenses for property {property_id}"):
            return self.session.execute(stmt).scalars().all()


class DatabaseNotificationSink(NotificationSink):
    """Stores notifications for the in-app notification center."""

    def __init__(self, session: Session):
        self.session = session

    def emit(
        self,
        kind: str,
        title: str,
        message: str,
        reference_id: Optional[int],
        reference_type: Optional[str] = None,
    ) -> None:
        with _persistence(f"Storing {kind} notification"):
            self.session.add(
                Notification(
                    notification_type=kind,
                    title=title,
                    message=message,
                    reference_id=reference_id,
                    reference_type=reference_type,
                    is_read=False,
                )
            )
            self.session.flush()


class SqlAlchemyPropertyDirectory(PropertyDirectory):
    def __init__(self, session: Session):
        self.session = session

    def property_name(self, property_id: int) -> Optional[str]:
        with _persistence(f"Loading property {property_id}"):
            return self.session.execute(
                select(Property.name).where(Property.id == property_id)
            ).scalar_one_or_none()


class SqlAlchemyAuditTrail(AuditTrail):
    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: Optional[int] = None,
        changes: Optional[dict] = None,
    ) -> None:
        self.session.add(
            AuditLog(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                actor_id=actor_id,
                changes=changes,
            )
        )


class SqlAlchemyUnitOfWork(UnitOfWork):
    """All repositories bound to one session and transaction."""

    def __init__(
        self, session: Session, invoice_number_prefix: str = "INV", invoice_due_days: int = 30
    ):
        self.session = session
        self.billings = SqlAlchemyRecurringBillingRepository(session)
        self.invoices = SqlAlchemyInvoiceRepository(session, invoice_number_prefix, invoice_due_days)
        self.payments = SqlAlchemyPaymentRepository(session)
        self.expenses = SqlAlchemyExpenseRepository(session)
        self.notifications = DatabaseNotificationSink(session)
        self.properties = SqlAlchemyPropertyDirectory(session)
        self.audit = SqlAlchemyAuditTrail(session)

    def commit(self) -> None:
        with _persistence("Commit"):
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def close(self) -> None:
        self.session.close()


class SqlAlchemyUnitOfWorkFactory:
    """Callable producing a fresh unit of work (one session) per call.

    Scheduler workers call it from their own threads, so each definition
    gets its own session and transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        invoice_number_prefix: str = "INV",
        invoice_due_days: int = 30,
    ):
        self.session_factory = session_factory
        self.invoice_number_prefix = invoice_number_prefix
        self.invoice_due_days = invoice_due_days

    def __call__(self) -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(
            self.session_factory(),
            invoice_number_prefix=self.invoice_number_prefix,
            invoice_due_days=self.invoice_due_days,
        )


__all__ = [
    "DatabaseNotificationSink",
    "SqlAlchemyAuditTrail",
    "SqlAlchemyExpenseRepository",
    "SqlAlchemyInvoiceRepository",
    "SqlAlchemyPaymentRepository",
    "SqlAlchemyPropertyDirectory",
    "SqlAlchemyRecurringBillingRepository",
    "SqlAlchemyUnitOfWork",
    "SqlAlchemyUnitOfWorkFactory",
    "invoice_number_for",
]
