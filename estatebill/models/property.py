"""Property ORM model."""

from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from estatebill.models import Base, BaseModel
from estatebill.models.types import StringList


class Property(Base, BaseModel):
    """Model representing a managed property.

    Amenities are an ordered list of strings; the JSON text encoding is
    handled by the column type.
    """

    __tablename__ = "properties"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    monthly_rent: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    amenities: Mapped[list[str]] = mapped_column(StringList, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, name={self.name})>"


__all__ = ["Property"]
