"""Expense ORM model for money spent on a property."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from estatebill.models import Base, BaseModel


class ExpenseCategory(str, Enum):
    """Expense categories offered when recording an expense."""

    TRUSTEE_FEES = "trustee fees"
    INTERNET = "internet"
    MANAGEMENT_FEES = "management fees"
    MAINTENANCE = "maintenance"
    UTILITIES = "utilities"
    INSURANCE = "insurance"
    TAXES = "taxes"
    REPAIRS = "repairs"
    OTHERS = "others"


class Expense(Base, BaseModel):
    """Model representing an expense recorded against a property (ledger outflow)."""

    __tablename__ = "expenses"

    property_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=ExpenseCategory.OTHERS.value,
    )
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (Index("idx_expense_property_date", "property_id", "expense_date"),)

    def __repr__(self) -> str:
        return (
            f"<Expense(id={self.id}, property_id={self.property_id}, category={self.category}, "
            f"amount={self.amount}, expense_date={self.expense_date})>"
        )


__all__ = ["Expense", "ExpenseCategory"]
