"""Invoice ORM model for rent and trustee-fee charges."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from estatebill.models import Base, BaseModel
from estatebill.models.recurring_billing import BillingType
from estatebill.models.types import UTCDateTime


class InvoiceStatus(str, Enum):
    """Invoice payment status."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class Invoice(Base, BaseModel):
    """Model representing an issued invoice.

    Invoices generated by the scheduler keep a reference to their recurring
    definition and the occurrence that produced them; the pair is unique.
    """

    __tablename__ = "invoices"

    billing_type: Mapped[BillingType] = mapped_column(SQLEnum(BillingType), nullable=False)
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    recurring_billing_id: Mapped[int | None] = mapped_column(
        ForeignKey("recurring_billings.id"),
        nullable=True,
        index=True,
    )
    occurrence_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime,
        nullable=True,
        comment="Scheduled generation date this invoice was produced for",
    )

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    late_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(10), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    amount_in_words: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus),
        nullable=False,
        default=InvoiceStatus.PENDING,
    )

    __table_args__ = (
        UniqueConstraint(
            "recurring_billing_id", "occurrence_date", name="uq_invoice_definition_occurrence"
        ),
        Index("idx_invoice_property_date", "property_id", "invoice_date"),
    )

    @property
    def total_amount(self) -> Decimal:
        """Base amount plus late fee."""
        return (self.amount or Decimal("0")) + (self.late_fee or Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, invoice_number={self.invoice_number}, "
            f"property_id={self.property_id}, amount={self.amount}, status={self.status})>"
        )


__all__ = ["Invoice", "InvoiceStatus"]
