"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime

from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from estatebill.models.types import UTCDateTime, utcnow

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from estatebill.models.audit_log import AuditLog  # noqa: E402
from estatebill.models.expense import Expense, ExpenseCategory  # noqa: E402
from estatebill.models.invoice import Invoice, InvoiceStatus  # noqa: E402
from estatebill.models.notification import Notification  # noqa: E402
from estatebill.models.payment import Payment  # noqa: E402
from estatebill.models.property import Property  # noqa: E402
from estatebill.models.recurring_billing import (  # noqa: E402
    BillingType,
    Periodicity,
    RecurringBillingDefinition,
)

__all__ = [
    "Base",
    "BaseModel",
    "AuditLog",
    "BillingType",
    "Expense",
    "ExpenseCategory",
    "Invoice",
    "InvoiceStatus",
    "Notification",
    "Payment",
    "Periodicity",
    "Property",
    "RecurringBillingDefinition",
]
