"""Initial schema: recurring billings, invoices, payments, expenses, properties,
notifications and audit logs.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-11-12 13:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

billing_type = sa.Enum("RENT", "TRUSTEE_FEES", name="billingtype")
periodicity = sa.Enum("MONTHLY", "BIMONTHLY", "QUARTERLY", name="periodicity")
invoice_status = sa.Enum("PENDING", "PAID", "OVERDUE", "CANCELLED", name="invoicestatus")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("monthly_rent", sa.Numeric(12, 2), nullable=True),
        sa.Column("amenities", sa.Text(), nullable=False, server_default="[]"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "recurring_billings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("billing_type", billing_type, nullable=False, comment="rent (tenant) or trustee_fees (owner)"),
        sa.Column("subject_id", sa.Integer(), nullable=False, comment="Tenant id for rent, owner id for trustee fees"),
        sa.Column("property_id", sa.Integer(), nullable=False, comment="Property the charge belongs to"),
        sa.Column("periodicity", periodicity, nullable=False),
        sa.Column(
            "generation_day",
            sa.Integer(),
            nullable=False,
            comment="Day of month (1-31) invoices are generated, clamped to month length",
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, comment="Opaque currency code, no conversion is performed"),
        sa.Column("description", sa.String(length=500), nullable=True, comment="Invoice description template"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("next_generation_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("needs_review", sa.Boolean(), nullable=False, server_default="0", comment="Set when the next date could not be computed"),
        sa.Column("review_reason", sa.String(length=500), nullable=True),
        sa.Column("last_generated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_recurring_billings_billing_type", "billing_type"),
        sa.Index("ix_recurring_billings_subject_id", "subject_id"),
        sa.Index("ix_recurring_billings_property_id", "property_id"),
        sa.Index("ix_recurring_billings_is_active", "is_active"),
        sa.Index("ix_recurring_billings_next_generation_date", "next_generation_date"),
        sa.Index("idx_recurring_due", "is_active", "needs_review", "next_generation_date"),
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("billing_type", billing_type, nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("recurring_billing_id", sa.Integer(), nullable=True),
        sa.Column(
            "occurrence_date",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Scheduled generation date this invoice was produced for",
        ),
        sa.Column("invoice_number", sa.String(length=50), nullable=False),
        sa.Column("invoice_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("late_fee", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(length=10), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("amount_in_words", sa.String(length=500), nullable=False),
        sa.Column("status", invoice_status, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["recurring_billing_id"], ["recurring_billings.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
        sa.UniqueConstraint(
            "recurring_billing_id", "occurrence_date", name="uq_invoice_definition_occurrence"
        ),
        sa.Index("ix_invoices_subject_id", "subject_id"),
        sa.Index("ix_invoices_property_id", "property_id"),
        sa.Index("ix_invoices_recurring_billing_id", "recurring_billing_id"),
        sa.Index("idx_invoice_property_date", "property_id", "invoice_date"),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=True, comment="Invoice settled by this payment, if any"),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_payments_property_id", "property_id"),
        sa.Index("ix_payments_invoice_id", "invoice_id"),
        sa.Index("ix_payments_payment_date", "payment_date"),
        sa.Index("idx_payment_property_date", "property_id", "payment_date"),
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_expenses_property_id", "property_id"),
        sa.Index("ix_expenses_expense_date", "expense_date"),
        sa.Index("idx_expense_property_date", "property_id", "expense_date"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("notification_type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.String(length=1000), nullable=False),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("reference_type", sa.String(length=50), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_notifications_notification_type", "notification_type"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_table("expenses")
    op.drop_table("payments")
    op.drop_table("invoices")
    op.drop_table("recurring_billings")
    op.drop_table("properties")
    billing_type.drop(op.get_bind(), checkfirst=True)
    periodicity.drop(op.get_bind(), checkfirst=True)
    invoice_status.drop(op.get_bind(), checkfirst=True)
