"""init schema: reference data, currencies, rent invoices, payments, audit

Revision ID: 0001_init
Revises:
Create Date: 2025-10-01
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "rental_units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("property_name", sa.String(length=200), nullable=False),
        sa.Column("unit_number", sa.String(length=40), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "tenancies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("rental_unit_id", sa.Integer(), sa.ForeignKey("rental_units.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("monthly_rent", sa.Numeric(14, 4), nullable=True),
        sa.Column("currency_code", sa.String(length=3), nullable=True),
        sa.Column("lease_start", sa.Date(), nullable=False),
        sa.Column("lease_end", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tenancies_rental_unit_id", "tenancies", ["rental_unit_id"])
    op.create_index("ix_tenancies_tenant_id", "tenancies", ["tenant_id"])
    op.create_index("ix_tenancies_is_active", "tenancies", ["is_active"])

    op.create_table(
        "currencies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=3), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("symbol", sa.String(length=10), nullable=False),
        sa.Column("exchange_rate", sa.Numeric(14, 6), nullable=False, server_default="1"),
        sa.Column("is_base", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("decimal_places", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_currencies_code", "currencies", ["code"], unique=True)

    op.create_table(
        "rent_invoices",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("invoice_number", sa.String(length=60), nullable=False, unique=True),
        sa.Column("tenancy_id", sa.Integer(), sa.ForeignKey("tenancies.id"), nullable=False),
        sa.Column("rental_unit_id", sa.Integer(), sa.ForeignKey("rental_units.id"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("period_year", sa.Integer(), nullable=False),
        sa.Column("period_month", sa.Integer(), nullable=False),
        sa.Column("due_amount", sa.Numeric(14, 4), nullable=False),
        sa.Column("currency_code", sa.String(length=3), nullable=False),
        sa.Column("amount_paid", sa.Numeric(14, 4), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("tenancy_id", "period_year", "period_month", name="uq_rent_invoices_tenancy_period"),
    )
    op.create_index("ix_rent_invoices_period", "rent_invoices", ["period_year", "period_month"])
    op.create_index("ix_rent_invoices_status", "rent_invoices", ["status"])
    op.create_index("ix_rent_invoices_tenancy_id", "rent_invoices", ["tenancy_id"])
    op.create_index("ix_rent_invoices_rental_unit_id", "rent_invoices", ["rental_unit_id"])
    op.create_index("ix_rent_invoices_tenant_id", "rent_invoices", ["tenant_id"])

    op.create_table(
        "payment_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.String(length=36), sa.ForeignKey("rent_invoices.id"), nullable=False),
        sa.Column("amount", sa.Numeric(14, 4), nullable=False),
        sa.Column("currency_code", sa.String(length=3), nullable=False),
        sa.Column("applied_amount", sa.Numeric(14, 4), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False, server_default="posting"),
        sa.Column("payment_mode", sa.String(length=40), nullable=True),
        sa.Column("reference", sa.String(length=120), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payment_records_invoice_id", "payment_records", ["invoice_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.String(length=80), nullable=False),
        sa.Column("before_json", sa.Text(), nullable=True),
        sa.Column("after_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])


def downgrade():
    op.drop_index("ix_audit_events_entity_id", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("ix_payment_records_invoice_id", table_name="payment_records")
    op.drop_table("payment_records")
    for ix in (
        "ix_rent_invoices_tenant_id",
        "ix_rent_invoices_rental_unit_id",
        "ix_rent_invoices_tenancy_id",
        "ix_rent_invoices_status",
        "ix_rent_invoices_period",
    ):
        op.drop_index(ix, table_name="rent_invoices")
    op.drop_table("rent_invoices")
    op.drop_index("ix_currencies_code", table_name="currencies")
    op.drop_table("currencies")
    for ix in ("ix_tenancies_is_active", "ix_tenancies_tenant_id", "ix_tenancies_rental_unit_id"):
        op.drop_index(ix, table_name="tenancies")
    op.drop_table("tenancies")
    op.drop_table("tenants")
    op.drop_table("rental_units")
