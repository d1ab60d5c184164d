"""Pydantic schemas for recurring billing definitions."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from estatebill.models.recurring_billing import BillingType, Periodicity


class RecurringBillingCreate(BaseModel):
    """Payload for creating or replacing a recurring billing definition."""

    billing_type: BillingType = Field(..., description="rent or trustee_fees")
    subject_id: int = Field(..., gt=0, description="Tenant id (rent) or owner id (trustee fees)")
    property_id: int = Field(..., gt=0, description="Property the charge belongs to")
    periodicity: Periodicity = Field(..., description="monthly, bimonthly or quarterly")
    generation_day: int = Field(..., ge=1, le=31, description="Day of month invoices are generated")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="USD", min_length=1, max_length=10)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool = True

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("periodicity", mode="before")
    @classmethod
    def _parse_periodicity(cls, value):
        if isinstance(value, str):
            try:
                return Periodicity.parse(value)
            except ValueError:
                # let pydantic report the enum error
                return value
        return value

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()


class RecurringBillingResponse(BaseModel):
    """Read model of a recurring billing definition."""

    id: int
    billing_type: BillingType
    subject_id: int
    property_id: int
    periodicity: Periodicity
    generation_day: int
    amount: Decimal
    currency: str
    description: str | None = None
    is_active: bool
    needs_review: bool
    review_reason: str | None = None
    next_generation_date: datetime
    last_generated_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
