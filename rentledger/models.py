from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

# Money columns: 4 decimal places covers every currency's minor units.
Money = Numeric(14, 4)


# -----------------------------
# Reference data (owned by the CRUD side of the app)
# -----------------------------
class RentalUnit(Base):
    __tablename__ = "rental_units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_number: Mapped[str] = mapped_column(String(40), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    tenancies: Mapped[List["Tenancy"]] = relationship(back_populates="rental_unit")


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    tenancies: Mapped[List["Tenancy"]] = relationship(back_populates="tenant")


class Tenancy(Base):
    __tablename__ = "tenancies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    rental_unit_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("rental_units.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # nullable on purpose: half-entered leases exist and must fail generation per tenancy
    monthly_rent: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    currency_code: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)

    lease_start: Mapped[date] = mapped_column(Date, nullable=False)
    lease_end: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    rental_unit: Mapped["RentalUnit"] = relationship(back_populates="tenancies")
    tenant: Mapped["Tenant"] = relationship(back_populates="tenancies")


class Currency(Base):
    __tablename__ = "currencies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(3), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    symbol: Mapped[str] = mapped_column(String(10), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False, default=Decimal("1"))  # base units per 1
    is_base: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    decimal_places: Mapped[int] = mapped_column(Integer, nullable=False, default=2)

    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Invoicing
# -----------------------------
class RentInvoice(Base):
    __tablename__ = "rent_invoices"
    __table_args__ = (
        UniqueConstraint("tenancy_id", "period_year", "period_month", name="uq_rent_invoices_tenancy_period"),
        Index("ix_rent_invoices_period", "period_year", "period_month"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    invoice_number: Mapped[str] = mapped_column(String(60), nullable=False, unique=True)

    tenancy_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenancies.id"), nullable=False, index=True)
    rental_unit_id: Mapped[int] = mapped_column(Integer, ForeignKey("rental_units.id"), nullable=False, index=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)

    due_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payments: Mapped[List["PaymentRecord"]] = relationship(back_populates="invoice", order_by="PaymentRecord.id")


class PaymentRecord(Base):
    __tablename__ = "payment_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[str] = mapped_column(String(36), ForeignKey("rent_invoices.id"), nullable=False, index=True)

    # what was posted vs what landed on the invoice (differs when converted)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    applied_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="posting")  # posting|manual
    payment_mode: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    posted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    invoice: Mapped["RentInvoice"] = relationship(back_populates="payments")


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False, index=True)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
