"""Initial schema: customers, records, adjustments, invoices, credit.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Reference tables ─────────────────────────────────────

    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("customer_no", sa.Integer(), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False, unique=True),
        sa.Column("address", sa.Text()),
        sa.Column("joined_date", sa.Date()),
        sa.Column("delivery_schedule", sa.JSON(), server_default="[]"),
        sa.Column("total_daily_quantity", sa.Float(), server_default="0"),
        sa.Column("total_daily_price", sa.Float(), server_default="0"),
        sa.Column("credit_balance", sa.Float(), server_default="0"),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_customers_customer_no", "customers", ["customer_no"])
    op.create_index("ix_customers_is_active", "customers", ["is_active"])

    op.create_table(
        "holidays",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("holiday_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("is_recurring_yearly", sa.Boolean(), server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_holidays_holiday_date", "holidays", ["holiday_date"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("key", sa.String(100), nullable=False, unique=True),
        sa.Column("value", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Deliveries ───────────────────────────────────────────

    op.create_table(
        "daily_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("record_date", sa.Date(), nullable=False),
        sa.Column("slots", sa.JSON(), server_default="[]"),
        sa.Column("total_daily_quantity", sa.Float(), server_default="0"),
        sa.Column("total_daily_price", sa.Float(), server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("customer_id", "record_date", name="uq_daily_records_customer_date"),
    )
    op.create_index("ix_daily_records_customer_id", "daily_records", ["customer_id"])
    op.create_index("ix_daily_records_record_date", "daily_records", ["record_date"])

    op.create_table(
        "quantity_adjustments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("adjustment_date", sa.Date(), nullable=False),
        sa.Column("slot", sa.String(20), nullable=False),
        sa.Column("milk_type_id", sa.String(36), nullable=False),
        sa.Column("subcategory_id", sa.String(36), nullable=False),
        sa.Column("old_quantity", sa.Float(), nullable=False),
        sa.Column("new_quantity", sa.Float(), nullable=False),
        sa.Column("delta", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("last_quantity", sa.Float()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "customer_id", "adjustment_date", "slot", "milk_type_id", "subcategory_id",
            name="uq_quantity_adjustments_key",
        ),
    )
    op.create_index("ix_quantity_adjustments_customer_id", "quantity_adjustments", ["customer_id"])
    op.create_index("ix_quantity_adjustments_adjustment_date", "quantity_adjustments", ["adjustment_date"])
    op.create_index("ix_quantity_adjustments_status", "quantity_adjustments", ["status"])

    # ── Billing ──────────────────────────────────────────────

    op.create_table(
        "invoices",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("invoice_number", sa.String(50), nullable=False, unique=True),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("items", sa.JSON(), server_default="[]"),
        sa.Column("total_quantity", sa.Float(), server_default="0"),
        sa.Column("total_amount", sa.Float(), server_default="0"),
        sa.Column("amount_paid", sa.Float(), server_default="0"),
        sa.Column("due_amount", sa.Float(), server_default="0"),
        sa.Column("status", sa.String(30), server_default="pending"),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_invoices_invoice_number", "invoices", ["invoice_number"])
    op.create_index("ix_invoices_customer_id", "invoices", ["customer_id"])
    op.create_index("ix_invoices_status", "invoices", ["status"])
    op.create_index("ix_invoices_created_at", "invoices", ["created_at"])
    op.create_index("ix_invoices_customer_period", "invoices", ["customer_id", "start_date", "end_date"])

    op.create_table(
        "invoice_payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("invoice_id", sa.String(36), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("paid_on", sa.Date()),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("transaction_id", sa.String(100)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_invoice_payments_invoice_id", "invoice_payments", ["invoice_id"])
    op.create_index("ix_invoice_payments_transaction_id", "invoice_payments", ["transaction_id"])

    op.create_table(
        "credit_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("balance_after", sa.Float(), nullable=False),
        sa.Column("invoice_id", sa.String(36), sa.ForeignKey("invoices.id")),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_credit_entries_customer_id", "credit_entries", ["customer_id"])


def downgrade() -> None:
    op.drop_table("credit_entries")
    op.drop_table("invoice_payments")
    op.drop_table("invoices")
    op.drop_table("quantity_adjustments")
    op.drop_table("daily_records")
    op.drop_table("system_settings")
    op.drop_table("holidays")
    op.drop_table("customers")
