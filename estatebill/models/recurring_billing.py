"""Recurring billing ORM model: standing instructions to auto-generate rent or trustee-fee invoices."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, Index, Integer, Numeric, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from estatebill.models import Base, BaseModel
from estatebill.models.types import UTCDateTime


class BillingType(str, Enum):
    """What a recurring definition bills for."""

    RENT = "rent"
    """Tenant rent; subject_id references a tenant"""

    TRUSTEE_FEES = "trustee_fees"
    """Owner trustee fees; subject_id references an owner"""


class Periodicity(str, Enum):
    """Interval between two generated invoices."""

    MONTHLY = "monthly"
    BIMONTHLY = "bimonthly"
    QUARTERLY = "quarterly"

    @property
    def months(self) -> int:
        """Number of calendar months one period spans."""
        return _PERIOD_MONTHS[self]

    @classmethod
    def parse(cls, value: "Periodicity | str") -> "Periodicity":
        """Resolve a periodicity from its value or a legacy alias.

        Raises:
            ValueError: If the value is not a recognized periodicity
        """
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        key = _PERIODICITY_ALIASES.get(key, key)
        return cls(key)


_PERIOD_MONTHS = {
    Periodicity.MONTHLY: 1,
    Periodicity.BIMONTHLY: 2,
    Periodicity.QUARTERLY: 3,
}

_PERIODICITY_ALIASES = {
    "2_months": "bimonthly",
    "bi-monthly": "bimonthly",
}


class RecurringBillingDefinition(Base, BaseModel):
    """Standing instruction to generate a charge every period.

    The scheduler only ever advances next_generation_date through a
    conditional update, so one occurrence produces at most one invoice.
    Definitions are deactivated instead of deleted once invoices exist.
    """

    __tablename__ = "recurring_billings"

    billing_type: Mapped[BillingType] = mapped_column(
        SQLEnum(BillingType),
        nullable=False,
        index=True,
        comment="rent (tenant) or trustee_fees (owner)",
    )
    subject_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Tenant id for rent, owner id for trustee fees",
    )
    property_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
        comment="Property the charge belongs to",
    )
    periodicity: Mapped[Periodicity] = mapped_column(
        SQLEnum(Periodicity),
        nullable=False,
    )
    generation_day: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Day of month (1-31) invoices are generated, clamped to month length",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    currency: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="USD",
        comment="Opaque currency code, no conversion is performed",
    )
    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Invoice description template",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )
    next_generation_date: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        index=True,
    )
    needs_review: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Set when the next date could not be computed",
    )
    review_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    last_generated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        Index("idx_recurring_due", "is_active", "needs_review", "next_generation_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<RecurringBillingDefinition(id={self.id}, billing_type={self.billing_type}, "
            f"property_id={self.property_id}, periodicity={self.periodicity}, "
            f"next_generation_date={self.next_generation_date})>"
        )


__all__ = ["BillingType", "Periodicity", "RecurringBillingDefinition"]
