"""Pytest configuration: in-memory databases and in-memory repository fakes."""

import os
import threading
from copy import copy
from datetime import datetime, timezone
from types import SimpleNamespace

# Set test database URL BEFORE any imports from estatebill
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest  # noqa: E402

from estatebill.errors import PersistenceError, SchedulingConflict  # noqa: E402
from estatebill.models import Base  # noqa: E402
from estatebill.repositories.base import (  # noqa: E402
    AuditTrail,
    InvoiceRepository,
    NotificationSink,
    PropertyDirectory,
    RecurringBillingRepository,
    UnitOfWork,
)
from estatebill.repositories.orm import SqlAlchemyUnitOfWorkFactory  # noqa: E402
from estatebill.services.db import create_db_engine, create_session_factory  # noqa: E402


@pytest.fixture
def engine():
    """Fresh in-memory database with all tables."""
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    """Create test database session."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def uow_factory(session_factory):
    """SQLAlchemy unit-of-work factory over the test database."""
    return SqlAlchemyUnitOfWorkFactory(session_factory, invoice_number_prefix="INV", invoice_due_days=30)


# --------------------------------------------------------------------------
# In-memory fakes for scheduler tests
# --------------------------------------------------------------------------


class MemoryStore:
    """Shared state behind the in-memory repositories (thread-safe)."""

    def __init__(self):
        self.lock = threading.Lock()
        self.definitions: dict[int, SimpleNamespace] = {}
        self.invoices: list[SimpleNamespace] = []
        self.notifications: list[dict] = []
        self.audit: list[dict] = []
        self.property_names: dict[int, str] = {}
        self.failing_invoice_definitions: set[int] = set()
        self.failing_notifications = False
        self.failing_due_check = False
        self.on_claim = None

    def add_definition(self, **fields) -> SimpleNamespace:
        defaults = {
            "billing_type": "rent",
            "subject_id": 1,
            "property_id": 1,
            "periodicity": "monthly",
            "generation_day": 1,
            "amount": 1000,
            "currency": "USD",
            "description": None,
            "is_active": True,
            "needs_review": False,
            "review_reason": None,
            "last_generated_at": None,
        }
        defaults.update(fields)
        definition = SimpleNamespace(**defaults)
        self.definitions[definition.id] = definition
        return definition


class MemoryBillings(RecurringBillingRepository):
    def __init__(self, store: MemoryStore):
        self.store = store
        self.claims = []

    def get(self, definition_id):
        return self.store.definitions.get(definition_id)

    def add(self, definition):
        self.store.definitions[definition.id] = definition
        return definition

    def list_definitions(self, billing_type=None, active_only=False):
        return sorted(self.store.definitions.values(), key=lambda d: d.next_generation_date)

    def list_active_due(self, before):
        if self.store.failing_due_check:
            raise PersistenceError("due check unavailable")
        with self.store.lock:
            return [
                copy(d)
                for d in sorted(self.store.definitions.values(), key=lambda d: d.id)
                if d.is_active and not d.needs_review and d.next_generation_date <= before
            ]

    def claim_and_advance(self, definition_id, expected_next_date, new_next_date):
        if self.store.on_claim:
            self.store.on_claim(definition_id)
        with self.store.lock:
            definition = self.store.definitions[definition_id]
            if not definition.is_active or definition.next_generation_date != expected_next_date:
                return False
            definition.next_generation_date = new_next_date
            self.claims.append((definition, expected_next_date, new_next_date))
            return True

    def mark_generated(self, definition_id, generated_at):
        self.store.definitions[definition_id].last_generated_at = generated_at

    def flag_for_review(self, definition_id, reason):
        definition = self.store.definitions[definition_id]
        definition.needs_review = True
        definition.review_reason = reason


class MemoryInvoices(InvoiceRepository):
    def __init__(self, store: MemoryStore):
        self.store = store
        self.created = []

    def create_from_definition(self, definition, amount_in_words, occurrence_date, invoice_date):
        if definition.id in self.store.failing_invoice_definitions:
            raise PersistenceError(f"invoice store down for definition {definition.id}")
        with self.store.lock:
            for invoice in self.store.invoices:
                if (
                    invoice.recurring_billing_id == definition.id
                    and invoice.occurrence_date == occurrence_date
                ):
                    raise SchedulingConflict(definition.id)
            invoice = SimpleNamespace(
                id=len(self.store.invoices) + 1,
                recurring_billing_id=definition.id,
                property_id=definition.property_id,
                occurrence_date=occurrence_date,
                invoice_date=invoice_date,
                invoice_number=f"INV-{occurrence_date:%Y%m%d}-{definition.id}",
                amount=definition.amount,
                currency=definition.currency,
                amount_in_words=amount_in_words,
            )
            self.store.invoices.append(invoice)
            self.created.append(invoice)
            return invoice


class MemoryNotifications(NotificationSink):
    def __init__(self, store: MemoryStore):
        self.store = store

    def emit(self, kind, title, message, reference_id, reference_type=None):
        if self.store.failing_notifications:
            raise PersistenceError("notification sink down")
        with self.store.lock:
            self.store.notifications.append(
                {
                    "kind": kind,
                    "title": title,
                    "message": message,
                    "reference_id": reference_id,
                    "reference_type": reference_type,
                }
            )


class MemoryProperties(PropertyDirectory):
    def __init__(self, store: MemoryStore):
        self.store = store

    def property_name(self, property_id):
        return self.store.property_names.get(property_id)


class MemoryAudit(AuditTrail):
    def __init__(self, store: MemoryStore):
        self.store = store

    def record(self, entity_type, entity_id, action, actor_id=None, changes=None):
        with self.store.lock:
            self.store.audit.append(
                {"entity_type": entity_type, "entity_id": entity_id, "action": action, "changes": changes}
            )


class MemoryUnitOfWork(UnitOfWork):
    """Unit of work over a MemoryStore; rollback undoes its claims and invoices."""

    def __init__(self, store: MemoryStore):
        self.store = store
        self.billings = MemoryBillings(store)
        self.invoices = MemoryInvoices(store)
        self.notifications = MemoryNotifications(store)
        self.properties = MemoryProperties(store)
        self.audit = MemoryAudit(store)

    def commit(self):
        self.billings.claims.clear()
        self.invoices.created.clear()

    def rollback(self):
        with self.store.lock:
            for definition, old_date, new_date in reversed(self.billings.claims):
                if definition.next_generation_date == new_date:
                    definition.next_generation_date = old_date
            for invoice in self.invoices.created:
                self.store.invoices.remove(invoice)
        self.commit()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def memory_uow_factory(memory_store):
    return lambda: MemoryUnitOfWork(memory_store)


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Aware UTC datetime shortcut for tests."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def at():
    """Factory for aware UTC datetimes: at(2025, 3, 15, 9)."""
    return utc
