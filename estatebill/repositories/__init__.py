"""Repository interfaces and their SQLAlchemy implementations."""

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
