"""Integration tests for the SQLAlchemy repositories on SQLite."""

from datetime import date
from decimal import Decimal

import pytest

from estatebill.errors import PersistenceError, SchedulingConflict
from estatebill.models import (
    AuditLog,
    Base,
    BillingType,
    Expense,
    Invoice,
    InvoiceStatus,
    Notification,
    Payment,
    Periodicity,
    Property,
    RecurringBillingDefinition,
)
from estatebill.repositories.orm import invoice_number_for


@pytest.fixture
def definition(db_session, at):
    definition = RecurringBillingDefinition(
        billing_type=BillingType.RENT,
        subject_id=3,
        property_id=12,
        periodicity=Periodicity.MONTHLY,
        generation_day=1,
        amount=Decimal("1000.00"),
        currency="USD",
        description="Monthly rent",
        is_active=True,
        needs_review=False,
        next_generation_date=at(2025, 4, 1),
    )
    db_session.add(definition)
    db_session.commit()
    return definition


class TestRecurringBillingRepository:
    def test_due_check_filters(self, db_session, uow_factory, definition, at):
        db_session.add_all(
            [
                RecurringBillingDefinition(
                    billing_type=BillingType.RENT,
                    subject_id=4,
                    property_id=13,
                    periodicity=Periodicity.MONTHLY,
                    generation_day=1,
                    amount=Decimal("500"),
                    is_active=False,
                    next_generation_date=at(2025, 3, 1),
                ),
                RecurringBillingDefinition(
                    billing_type=BillingType.TRUSTEE_FEES,
                    subject_id=5,
                    property_id=14,
                    periodicity=Periodicity.QUARTERLY,
                    generation_day=1,
                    amount=Decimal("80"),
                    needs_review=True,
                    next_generation_date=at(2025, 3, 1),
                ),
                RecurringBillingDefinition(
                    billing_type=BillingType.RENT,
                    subject_id=6,
                    property_id=15,
                    periodicity=Periodicity.MONTHLY,
                    generation_day=2,
                    amount=Decimal("700"),
                    next_generation_date=at(2025, 4, 2),
                ),
            ]
        )
        db_session.commit()

        with uow_factory() as uow:
            due = uow.billings.list_active_due(at(2025, 4, 1, 9))

        assert [d.id for d in due] == [definition.id]

    def test_datetimes_come_back_aware(self, uow_factory, definition, at):
        with uow_factory() as uow:
            loaded = uow.billings.get(definition.id)
            assert loaded.next_generation_date == at(2025, 4, 1)
            assert loaded.next_generation_date.tzinfo is not None

    def test_claim_succeeds_once(self, uow_factory, definition, at):
        with uow_factory() as uow:
            first = uow.billings.claim_and_advance(definition.id, at(2025, 4, 1), at(2025, 5, 1))
        with uow_factory() as uow:
            second = uow.billings.claim_and_advance(definition.id, at(2025, 4, 1), at(2025, 5, 1))
            stored = uow.billings.get(definition.id).next_generation_date

        assert first is True
        assert second is False
        assert stored == at(2025, 5, 1)

    def test_claim_fails_for_inactive(self, db_session, uow_factory, definition, at):
        definition.is_active = False
        db_session.commit()

        with uow_factory() as uow:
            assert not uow.billings.claim_and_advance(definition.id, at(2025, 4, 1), at(2025, 5, 1))

    def test_claim_rolled_back_with_unit_of_work(self, uow_factory, definition, at):
        with pytest.raises(RuntimeError):
            with uow_factory() as uow:
                uow.billings.claim_and_advance(definition.id, at(2025, 4, 1), at(2025, 5, 1))
                raise RuntimeError("boom")

        with uow_factory() as uow:
            assert uow.billings.get(definition.id).next_generation_date == at(2025, 4, 1)

    def test_flag_for_review_hides_from_due_check(self, uow_factory, definition, at):
        with uow_factory() as uow:
            uow.billings.flag_for_review(definition.id, "bad periodicity")
        with uow_factory() as uow:
            flagged = uow.billings.get(definition.id)
            due = uow.billings.list_active_due(at(2025, 4, 1, 9))

        assert flagged.needs_review is True
        assert flagged.review_reason == "bad periodicity"
        assert due == []

    def test_mark_generated(self, uow_factory, definition, at):
        with uow_factory() as uow:
            uow.billings.mark_generated(definition.id, at(2025, 4, 1, 9))
        with uow_factory() as uow:
            assert uow.billings.get(definition.id).last_generated_at == at(2025, 4, 1, 9)

    def test_list_definitions_filters(self, uow_factory, definition):
        with uow_factory() as uow:
            rent = uow.billings.list_definitions(BillingType.RENT)
            fees = uow.billings.list_definitions(BillingType.TRUSTEE_FEES, active_only=True)

        assert [d.id for d in rent] == [definition.id]
        assert fees == []


class TestInvoiceRepository:
    def test_create_from_definition(self, uow_factory, definition, at):
        with uow_factory() as uow:
            invoice = uow.invoices.create_from_definition(
                definition, "One thousand", at(2025, 4, 1), date(2025, 4, 1)
            )
            invoice_id = invoice.id

        with uow_factory() as uow:
            stored = uow.session.get(Invoice, invoice_id)
            assert stored.invoice_number == "INV-20250401-%d" % definition.id
            assert stored.due_date == date(2025, 5, 1)
            assert stored.status == InvoiceStatus.PENDING
            assert stored.billing_type == BillingType.RENT
            assert stored.amount == Decimal("1000.00")
            assert stored.amount_in_words == "One thousand"
            assert stored.recurring_billing_id == definition.id
            assert stored.total_amount == Decimal("1000.00")

    def test_duplicate_occurrence_raises_conflict(self, uow_factory, definition, at):
        with uow_factory() as uow:
            uow.invoices.create_from_definition(
                definition, "One thousand", at(2025, 4, 1), date(2025, 4, 1)
            )

        with pytest.raises(SchedulingConflict):
            with uow_factory() as uow:
                uow.invoices.create_from_definition(
                    definition, "One thousand", at(2025, 4, 1), date(2025, 4, 2)
                )

        with uow_factory() as uow:
            assert uow.session.query(Invoice).count() == 1

    def test_duplicate_occurrence_keeps_earlier_claim(self, uow_factory, definition, at):
        with uow_factory() as uow:
            uow.invoices.create_from_definition(
                definition, "One thousand", at(2025, 4, 1), date(2025, 4, 1)
            )

        with uow_factory() as uow:
            assert uow.billings.claim_and_advance(definition.id, at(2025, 4, 1), at(2025, 5, 1))
            with pytest.raises(SchedulingConflict):
                uow.invoices.create_from_definition(
                    definition, "One thousand", at(2025, 4, 1), date(2025, 4, 2)
                )
            uow.billings.mark_generated(definition.id, at(2025, 4, 2))

        with uow_factory() as uow:
            stored = uow.billings.get(definition.id)
            assert stored.next_generation_date == at(2025, 5, 1)
            assert stored.last_generated_at == at(2025, 4, 2)
            assert uow.session.query(Invoice).count() == 1

    def test_invoice_number_format(self, at):
        assert invoice_number_for("INV", 7, at(2025, 2, 1)) == "INV-20250201-7"


class TestLedgerRepositories:
    def test_range_is_inclusive_and_ordered(self, db_session, uow_factory):
        db_session.add_all(
            [
                Payment(property_id=1, amount=Decimal("300"), payment_date=date(2025, 1, 31)),
                Payment(property_id=1, amount=Decimal("100"), payment_date=date(2025, 1, 1)),
                Payment(property_id=1, amount=Decimal("999"), payment_date=date(2025, 2, 1)),
                Payment(property_id=2, amount=Decimal("50"), payment_date=date(2025, 1, 10)),
                Expense(
                    property_id=1,
                    amount=Decimal("40"),
                    expense_date=date(2025, 1, 15),
                    category="internet",
                ),
                Expense(property_id=1, amount=Decimal("60"), expense_date=date(2024, 12, 31)),
            ]
        )
        db_session.commit()

        with uow_factory() as uow:
            payments = uow.payments.list_by_property_and_range(1, date(2025, 1, 1), date(2025, 1, 31))
            expenses = uow.expenses.list_by_property_and_range(1, date(2025, 1, 1), date(2025, 1, 31))

        assert [p.amount for p in payments] == [Decimal("100"), Decimal("300")]
        assert [e.amount for e in expenses] == [Decimal("40")]
        assert expenses[0].category == "internet"

    def test_expense_category_defaults_to_others(self, db_session):
        expense = Expense(property_id=1, amount=Decimal("1"), expense_date=date(2025, 1, 1))
        db_session.add(expense)
        db_session.commit()
        assert expense.category == "others"


class TestPropertyDirectoryAndSinks:
    def test_property_name_and_amenities(self, db_session, uow_factory):
        prop = Property(name="Lakeview 4B", amenities=["parking", "pool"])
        db_session.add(prop)
        db_session.commit()

        with uow_factory() as uow:
            assert uow.properties.property_name(prop.id) == "Lakeview 4B"
            assert uow.properties.property_name(9999) is None
            assert uow.session.get(Property, prop.id).amenities == ["parking", "pool"]

    def test_notification_and_audit_committed_with_unit_of_work(self, uow_factory):
        with uow_factory() as uow:
            uow.notifications.emit("periodic_rent_generated", "Title", "Message", 5, "invoice")
            uow.audit.record("recurring_billing", 1, "generate", changes={"invoice_id": 5})

        with uow_factory() as uow:
            notification = uow.session.query(Notification).one()
            audit = uow.session.query(AuditLog).one()

        assert notification.notification_type == "periodic_rent_generated"
        assert notification.is_read is False
        assert audit.changes == {"invoice_id": 5}

    def test_sql_errors_become_persistence_errors(self, engine, uow_factory, at):
        Base.metadata.drop_all(engine)

        with pytest.raises(PersistenceError):
            with uow_factory() as uow:
                uow.billings.list_active_due(at(2025, 1, 1))
