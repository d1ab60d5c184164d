"""Recurring billing definition management.

Validation happens here, at save time, so the scheduler only ever sees
definitions with a generation day in 1-31, a known periodicity and a
positive amount.
"""

import logging
from datetime import datetime
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from estatebill.errors import ValidationError
from estatebill.models.recurring_billing import BillingType, RecurringBillingDefinition
from estatebill.models.types import as_utc, utcnow
from estatebill.repositories.orm import (
    DatabaseNotificationSink,
    SqlAlchemyAuditTrail,
    SqlAlchemyPropertyDirectory,
    SqlAlchemyRecurringBillingRepository,
)
from estatebill.schemas.recurring_billing import RecurringBillingCreate
from estatebill.services.recurrence import next_occurrence

logger = logging.getLogger(__name__)

SETUP_NOTIFICATION_KINDS = {
    BillingType.RENT: "periodic_rent_setup",
    BillingType.TRUSTEE_FEES: "periodic_trustee_fees_setup",
}


def _validate(payload: RecurringBillingCreate | Mapping[str, Any]) -> RecurringBillingCreate:
    if isinstance(payload, RecurringBillingCreate):
        return payload
    try:
        return RecurringBillingCreate.model_validate(dict(payload))
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid recurring billing: {problems}") from e


class RecurringBillingService:
    """Service for recurring billing definition CRUD.

    Definitions are never hard-deleted: invoices keep referencing them,
    so deactivate() is the delete operation.
    """

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session
        self.repository = SqlAlchemyRecurringBillingRepository(db_session)
        self.audit = SqlAlchemyAuditTrail(db_session)
        self.notifications = DatabaseNotificationSink(db_session)
        self.properties = SqlAlchemyPropertyDirectory(db_session)

    def get(self, definition_id: int) -> RecurringBillingDefinition:
        """Get definition by ID.

        Raises:
            ValidationError: If no definition has this id
        """
        definition = self.repository.get(definition_id)
        if definition is None:
            raise ValidationError(f"Recurring billing {definition_id} not found")
        return definition

    def list_definitions(
        self, billing_type: BillingType | None = None, active_only: bool = False
    ) -> list[RecurringBillingDefinition]:
        """List definitions ordered by next generation date."""
        return list(self.repository.list_definitions(billing_type, active_only))

    def create_definition(
        self,
        payload: RecurringBillingCreate | Mapping[str, Any],
        now: datetime | None = None,
        actor_id: int | None = None,
    ) -> RecurringBillingDefinition:
        """Validate and save a new definition with its first generation date.

        Args:
            payload: Definition fields (schema instance or mapping)
            now: Reference time for the first generation date (default: current UTC time)
            actor_id: User who configured the definition (optional)

        Returns:
            Created RecurringBillingDefinition

        Raises:
            ValidationError: If any field is invalid
        """
        data = _validate(payload)
        now = as_utc(now or utcnow())

        definition = RecurringBillingDefinition(
            billing_type=data.billing_type,
            subject_id=data.subject_id,
            property_id=data.property_id,
            periodicity=data.periodicity,
            generation_day=data.generation_day,
            amount=data.amount,
            currency=data.currency,
            description=data.description,
            is_active=data.is_active,
            needs_review=False,
            next_generation_date=next_occurrence(data.periodicity, data.generation_day, now),
        )
        self.repository.add(definition)
        self.audit.record(
            "recurring_billing",
            definition.id,
            "create",
            actor_id,
            {"next_generation_date": definition.next_generation_date.isoformat()},
        )
        self._notify_setup(definition, "set up")
        self.db.commit()

        logger.info(
            "Created recurring billing: id=%d, type=%s, property=%d, periodicity=%s, day=%d, next=%s",
            definition.id,
            definition.billing_type.value,
            definition.property_id,
            definition.periodicity.value,
            definition.generation_day,
            definition.next_generation_date.isoformat(),
        )
        return definition

    def update_definition(
        self,
        definition_id: int,
        payload: RecurringBillingCreate | Mapping[str, Any],
        now: datetime | None = None,
        actor_id: int | None = None,
    ) -> RecurringBillingDefinition:
        """Replace a definition's fields and recompute its next generation date.

        Raises:
            ValidationError: If the definition does not exist or a field is invalid
        """
        data = _validate(payload)
        now = as_utc(now or utcnow())
        definition = self.get(definition_id)

        definition.billing_type = data.billing_type
        definition.subject_id = data.subject_id
        definition.property_id = data.property_id
        definition.periodicity = data.periodicity
        definition.generation_day = data.generation_day
        definition.amount = data.amount
        definition.currency = data.currency
        definition.description = data.description
        definition.is_active = data.is_active
        definition.needs_review = False
        definition.review_reason = None
        definition.next_generation_date = next_occurrence(
            data.periodicity, data.generation_day, now
        )

        self.audit.record(
            "recurring_billing",
            definition.id,
            "update",
            actor_id,
            {"next_generation_date": definition.next_generation_date.isoformat()},
        )
        self._notify_setup(definition, "updated")
        self.db.commit()

        logger.info(
            "Updated recurring billing %d, next generation %s",
            definition.id,
            definition.next_generation_date.isoformat(),
        )
        return definition

    def set_active(
        self,
        definition_id: int,
        active: bool,
        now: datetime | None = None,
        actor_id: int | None = None,
    ) -> RecurringBillingDefinition:
        """Activate or deactivate a definition.

        Reactivation recomputes the next generation date from now and clears
        any review flag, so a paused definition does not bill for the time it
        was inactive.
        """
        definition = self.get(definition_id)
        if definition.is_active == active:
            return definition

        definition.is_active = active
        if active:
            now = as_utc(now or utcnow())
            definition.needs_review = False
            definition.review_reason = None
            definition.next_generation_date = next_occurrence(
                definition.periodicity, definition.generation_day, now
            )

        self.audit.record(
            "recurring_billing",
            definition.id,
            "activate" if active else "deactivate",
            actor_id,
            {"is_active": active},
        )
        self.db.commit()

        logger.info("Recurring billing %d %s", definition.id, "activated" if active else "deactivated")
        return definition

    def deactivate(self, definition_id: int, actor_id: int | None = None) -> RecurringBillingDefinition:
        """Soft-delete a definition."""
        return self.set_active(definition_id, False, actor_id=actor_id)

    def _notify_setup(self, definition: RecurringBillingDefinition, verb: str) -> None:
        property_name = (
            self.properties.property_name(definition.property_id)
            or f"property #{definition.property_id}"
        )
        if definition.billing_type == BillingType.RENT:
            title = "Periodic Rent Invoice"
        else:
            title = "Periodic Trustee Fees Invoice"
        self.notifications.emit(
            SETUP_NOTIFICATION_KINDS[BillingType(definition.billing_type)],
            f"{title} {verb.title()}",
            f"{title.lower().capitalize()} for {property_name} has been {verb}",
            definition.id,
            "recurring_billing",
        )


__all__ = ["RecurringBillingService"]
