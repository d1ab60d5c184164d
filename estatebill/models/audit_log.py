"""Audit log model for tracking recurring billing lifecycle events."""

from typing import Any

from sqlalchemy import JSON
from sqlalchemy.orm import Mapped, mapped_column

from estatebill.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """Audit log entry for tracking changes to key entities.

    Records who (actor_id) did what (action) to which entity (entity_type, entity_id)
    and optional field snapshots (changes). actor_id is None for scheduler actions.
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(index=False)
    """Entity type being audited: "recurring_billing", "invoice"."""

    entity_id: Mapped[int] = mapped_column(index=False)

    action: Mapped[str] = mapped_column(index=False)
    """Action performed: "create", "generate", "deactivate", "flag_review", etc."""

    actor_id: Mapped[int | None] = mapped_column(nullable=True, index=False)

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True, index=False)
    """Optional JSON snapshot of changed fields: {"invoice_id": 12, "next_generation_date": "..."}."""

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_type={self.entity_type}, entity_id={self.entity_id}, "
            f"action={self.action}, actor_id={self.actor_id}, created_at={self.created_at})>"
        )


__all__ = ["AuditLog"]
