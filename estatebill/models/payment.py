"""Payment ORM model for money received against a property."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from estatebill.models import Base, BaseModel


class Payment(Base, BaseModel):
    """Model representing a payment received for a property (ledger income)."""

    __tablename__ = "payments"

    property_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    invoice_id: Mapped[int | None] = mapped_column(
        ForeignKey("invoices.id"),
        nullable=True,
        index=True,
        comment="Invoice settled by this payment, if any",
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (Index("idx_payment_property_date", "property_id", "payment_date"),)

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, property_id={self.property_id}, "
            f"amount={self.amount}, payment_date={self.payment_date})>"
        )


__all__ = ["Payment"]
