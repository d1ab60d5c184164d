"""Notification ORM model for in-app notification center entries."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from estatebill.models import Base, BaseModel


class Notification(Base, BaseModel):
    """A notification shown to the back-office user."""

    __tablename__ = "notifications"

    notification_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    """Kind: "periodic_rent_generated", "periodic_trustee_fees_setup", etc."""

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(String(1000), nullable=False)

    reference_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    """Primary key of the referenced entity (invoice, recurring definition)."""

    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, notification_type={self.notification_type}, "
            f"reference_type={self.reference_type}, reference_id={self.reference_id})>"
        )


__all__ = ["Notification"]
