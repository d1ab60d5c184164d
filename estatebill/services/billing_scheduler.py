"""Billing scheduler: generates invoices for due recurring billing definitions.

Per definition, per run: Due-Check -> Claim -> Generate -> Notify.

- Due-Check: active, unflagged definitions with next_generation_date <= now
- Claim: next_generation_date is advanced with a conditional update that
  only succeeds for the first caller observing the due date; losing the race
  means another run already handled the occurrence
- Generate: the invoice is created in the same unit of work as the claim.
  A failed invoice rolls the claim back with it, so the due date stays for
  the next run. An occurrence that already has an invoice keeps the claim,
  so the schedule moves on instead of retrying it forever
- Notify: best-effort, after commit; failures are logged and ignored

Definitions are processed independently by a bounded thread pool that lives
as long as the scheduler. Each definition's timeout starts when a worker
picks it up. Workers stuck past their timeout are abandoned; when every
worker is stuck, definitions still queued are cancelled for the next run.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from estatebill.errors import (
    DateComputationError,
    PersistenceError,
    SchedulingConflict,
    ValidationError,
)
from estatebill.models.recurring_billing import BillingType
from estatebill.models.types import as_utc, utcnow
from estatebill.repositories.base import UnitOfWork
from estatebill.services.amount_words import amount_to_words
from estatebill.services.recurrence import next_occurrence

logger = logging.getLogger(__name__)

NOTIFICATION_KINDS = {
    BillingType.RENT: "periodic_rent_generated",
    BillingType.TRUSTEE_FEES: "periodic_trustee_fees_generated",
}

INVOICE_LABELS = {
    BillingType.RENT: "Rent",
    BillingType.TRUSTEE_FEES: "Trustee fees",
}


class Outcome(str, Enum):
    """Result of processing one definition in one run."""

    GENERATED = "generated"
    SKIPPED = "skipped"
    FAILED = "failed"
    FLAGGED = "flagged"
    CANCELLED = "cancelled"


@dataclass
class DefinitionOutcome:
    definition_id: int
    outcome: Outcome
    invoice_id: Optional[int] = None
    detail: Optional[str] = None


@dataclass
class SchedulerRunResult:
    """Summary of one scheduler run."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    total_due: int = 0
    due_check_failed: bool = False
    generated: list[int] = field(default_factory=list)
    """Ids of invoices created in this run"""
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    flagged: list[int] = field(default_factory=list)
    cancelled: list[int] = field(default_factory=list)
    """Definition ids per outcome (skipped = already handled elsewhere)"""

    def add(self, outcome: DefinitionOutcome) -> None:
        if outcome.outcome == Outcome.GENERATED:
            self.generated.append(outcome.invoice_id)
        elif outcome.outcome == Outcome.SKIPPED:
            self.skipped.append(outcome.definition_id)
        elif outcome.outcome == Outcome.FLAGGED:
            self.flagged.append(outcome.definition_id)
        elif outcome.outcome == Outcome.CANCELLED:
            self.cancelled.append(outcome.definition_id)
        else:
            self.failed.append(outcome.definition_id)

    @property
    def ok(self) -> bool:
        """True when nothing failed (skipped and cancelled definitions are fine)."""
        return not self.due_check_failed and not self.failed and not self.flagged


class BillingScheduler:
    """Generate invoices for every due recurring billing definition."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        max_workers: int = 4,
        definition_timeout: float = 30.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize scheduler.

        Args:
            uow_factory: Returns a fresh unit of work; called once per
                definition step, possibly from worker threads
            max_workers: Upper bound of definitions processed concurrently
            definition_timeout: Seconds one definition may run once a worker
                has picked it up
            clock: Source of "now" when run() is called without one
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.uow_factory = uow_factory
        self.max_workers = max_workers
        self.definition_timeout = definition_timeout
        self.clock = clock
        self._stop = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()
        self._abandoned: set[Future] = set()
        self._poll_interval = max(0.01, min(0.5, definition_timeout / 10))

    @classmethod
    def from_settings(cls, settings=None) -> "BillingScheduler":
        """Scheduler wired to the configured database."""
        from estatebill.config import get_settings
        from estatebill.repositories.orm import SqlAlchemyUnitOfWorkFactory
        from estatebill.services.db import get_session_factory

        settings = settings or get_settings()
        factory = SqlAlchemyUnitOfWorkFactory(
            get_session_factory(),
            invoice_number_prefix=settings.invoice_number_prefix,
            invoice_due_days=settings.invoice_due_days,
        )
        return cls(
            factory,
            max_workers=settings.scheduler_max_workers,
            definition_timeout=settings.scheduler_definition_timeout,
        )

    def cancel(self) -> None:
        """Stop picking up definitions in the current run; those already started complete."""
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def close(self, wait: bool = False) -> None:
        """Shut the worker pool down; queued definitions are dropped.

        Args:
            wait: Block until running workers (including abandoned ones) return
        """
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait, cancel_futures=True)
        self._abandoned.clear()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="billing-scheduler",
                )
            return self._executor

    def stuck_workers(self) -> int:
        """Workers still busy with definitions abandoned after their timeout."""
        self._abandoned = {future for future in self._abandoned if not future.done()}
        return len(self._abandoned)

    def run(self, now: Optional[datetime] = None) -> SchedulerRunResult:
        """Process every definition due at now.

        Args:
            now: Reference time (default: clock()); naive values are read as UTC

        Returns:
            SchedulerRunResult with per-outcome ids
        """
        now = as_utc(now or self.clock())
        self._stop.clear()
        result = SchedulerRunResult(started_at=now)

        try:
            with self.uow_factory() as uow:
                due = list(uow.billings.list_active_due(now))
        except PersistenceError as e:
            logger.error("Due check at %s failed: %s", now.isoformat(), e)
            result.due_check_failed = True
            result.finished_at = self.clock()
            return result

        result.total_due = len(due)
        if not due:
            logger.info("No recurring billings due at %s", now.isoformat())
            result.finished_at = self.clock()
            return result

        logger.info("Processing %d due recurring billings at %s", len(due), now.isoformat())

        executor = self._get_executor()
        started: dict[int, float] = {}
        pending = {
            executor.submit(self._process_timed, definition, now, started): definition
            for definition in due
        }
        while pending:
            done, _ = wait(pending, timeout=self._poll_interval, return_when=FIRST_COMPLETED)
            for future in done:
                result.add(self._collect(future, pending.pop(future)))
            self._expire(pending, started, result)

        result.finished_at = self.clock()
        logger.info(
            "Scheduler run at %s done: generated=%d skipped=%d failed=%d flagged=%d cancelled=%d",
            now.isoformat(),
            len(result.generated),
            len(result.skipped),
            len(result.failed),
            len(result.flagged),
            len(result.cancelled),
        )
        return result

    def _process_timed(self, definition, now: datetime, started: dict) -> DefinitionOutcome:
        started[definition.id] = time.monotonic()
        return self._process(definition, now)

    def _collect(self, future: Future, definition) -> DefinitionOutcome:
        if future.cancelled():
            return DefinitionOutcome(definition.id, Outcome.CANCELLED, detail="no free worker")
        try:
            return future.result()
        except Exception as e:
            logger.exception(
                "Recurring billing %s (property %s) failed unexpectedly",
                definition.id,
                definition.property_id,
            )
            return DefinitionOutcome(definition.id, Outcome.FAILED, detail=str(e))

    def _expire(self, pending: dict, started: dict, result: SchedulerRunResult) -> None:
        clock = time.monotonic()
        for future, definition in list(pending.items()):
            began = started.get(definition.id)
            if began is None or clock - began < self.definition_timeout:
                continue
            del pending[future]
            self._abandoned.add(future)
            logger.error(
                "Recurring billing %s (property %s) timed out after %.1fs",
                definition.id,
                definition.property_id,
                self.definition_timeout,
            )
            result.add(DefinitionOutcome(definition.id, Outcome.FAILED, detail="timeout"))

        if pending and self.stuck_workers() >= self.max_workers:
            # cancel() only succeeds for futures no worker has picked up
            for future, definition in pending.items():
                if definition.id not in started and future.cancel():
                    logger.warning(
                        "No free worker for recurring billing %s (property %s), leaving it for the next run",
                        definition.id,
                        definition.property_id,
                    )

    def _process(self, definition, now: datetime) -> DefinitionOutcome:
        definition_id = definition.id
        property_id = definition.property_id
        if self._stop.is_set():
            logger.info("Run cancelled, leaving recurring billing %s for later", definition_id)
            return DefinitionOutcome(definition_id, Outcome.CANCELLED)

        due_date = definition.next_generation_date
        try:
            new_next = self.compute_next_date(definition, now)
            words = amount_to_words(definition.amount)
        except (DateComputationError, ValidationError) as e:
            logger.error(
                "Recurring billing %s (property %s) needs review: %s", definition_id, property_id, e
            )
            self._flag_for_review(definition_id, str(e))
            return DefinitionOutcome(definition_id, Outcome.FLAGGED, detail=str(e))

        invoice = None
        try:
            with self.uow_factory() as uow:
                if not uow.billings.claim_and_advance(definition_id, due_date, new_next):
                    raise SchedulingConflict(definition_id)
                try:
                    invoice = uow.invoices.create_from_definition(
                        definition, words, due_date, now.date()
                    )
                except SchedulingConflict:
                    # Occurrence already invoiced: commit the advanced date anyway
                    uow.audit.record(
                        "recurring_billing",
                        definition_id,
                        "skip_duplicate",
                        changes={
                            "occurrence_date": due_date.isoformat(),
                            "next_generation_date": new_next.isoformat(),
                        },
                    )
                else:
                    uow.billings.mark_generated(definition_id, now)
                    uow.audit.record(
                        "recurring_billing",
                        definition_id,
                        "generate",
                        changes={
                            "invoice_id": invoice.id,
                            "occurrence_date": due_date.isoformat(),
                            "next_generation_date": new_next.isoformat(),
                        },
                    )
                    invoice_id = invoice.id
                    invoice_number = invoice.invoice_number
        except SchedulingConflict:
            logger.info(
                "Recurring billing %s occurrence %s already handled, skipping",
                definition_id,
                due_date.isoformat(),
            )
            return DefinitionOutcome(definition_id, Outcome.SKIPPED)
        except PersistenceError as e:
            logger.error(
                "Generating invoice for recurring billing %s (property %s) failed, "
                "will retry next run: %s",
                definition_id,
                property_id,
                e,
            )
            return DefinitionOutcome(definition_id, Outcome.FAILED, detail=str(e))

        if invoice is None:
            logger.warning(
                "Recurring billing %s occurrence %s already had an invoice, advanced to %s",
                definition_id,
                due_date.isoformat(),
                new_next.isoformat(),
            )
            return DefinitionOutcome(definition_id, Outcome.SKIPPED, detail="duplicate occurrence")

        logger.info(
            "Generated invoice %s for recurring billing %s (property %s), next generation %s",
            invoice_number,
            definition_id,
            property_id,
            new_next.isoformat(),
        )
        self._notify(definition, invoice_id, invoice_number)
        return DefinitionOutcome(definition_id, Outcome.GENERATED, invoice_id=invoice_id)

    @staticmethod
    def compute_next_date(definition, now: datetime) -> datetime:
        """Next generation date for a definition, anchored at now.

        Raises:
            DateComputationError: If the stored schedule cannot produce a
                date strictly after now
        """
        try:
            new_next = next_occurrence(definition.periodicity, definition.generation_day, now)
        except (ValidationError, ValueError, OverflowError) as e:
            raise DateComputationError(
                f"Cannot compute next date for recurring billing {definition.id}: {e}"
            ) from e
        if new_next <= now:
            raise DateComputationError(
                f"Next date {new_next.isoformat()} for recurring billing {definition.id} "
                f"is not after {now.isoformat()}"
            )
        return new_next

    def _flag_for_review(self, definition_id: int, reason: str) -> None:
        try:
            with self.uow_factory() as uow:
                uow.billings.flag_for_review(definition_id, reason)
                uow.audit.record(
                    "recurring_billing", definition_id, "flag_review", changes={"reason": reason}
                )
        except PersistenceError as e:
            logger.error("Could not flag recurring billing %s for review: %s", definition_id, e)

    def _notify(self, definition, invoice_id: int, invoice_number: str) -> None:
        billing_type = BillingType(definition.billing_type)
        label = INVOICE_LABELS[billing_type]
        try:
            with self.uow_factory() as uow:
                property_name = (
                    uow.properties.property_name(definition.property_id)
                    or f"property #{definition.property_id}"
                )
                uow.notifications.emit(
                    NOTIFICATION_KINDS[billing_type],
                    f"{label} Invoice Generated",
                    f"{label} invoice {invoice_number} generated for {property_name}",
                    invoice_id,
                    "invoice",
                )
        except Exception as e:
            # Notifications never undo billing
            logger.warning(
                "Notification for invoice %s (recurring billing %s, property %s) failed: %s",
                invoice_number,
                definition.id,
                definition.property_id,
                e,
            )


__all__ = [
    "BillingScheduler",
    "DefinitionOutcome",
    "Outcome",
    "SchedulerRunResult",
]
