from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Any

from pydantic import BaseModel, Field, ConfigDict

from .domain.types import Invoice, InvoiceStatus


# -------------------- Errors --------------------

class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorOut(BaseModel):
    error: ErrorBody


# -------------------- Invoices --------------------

class BillingPeriodIn(BaseModel):
    year: int = Field(ge=2000, le=2200)
    month: int = Field(ge=1, le=12)


class InvoiceSummaryOut(BaseModel):
    id: str
    invoice_number: str
    tenancy_id: int
    rental_unit_id: int
    tenant_id: int
    period: str
    due_amount: Decimal
    currency_code: str
    amount_paid: Decimal
    outstanding: Decimal
    status: InvoiceStatus
    due_date: date
    created_at: datetime
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None

    @classmethod
    def from_invoice(cls, inv: Invoice) -> "InvoiceSummaryOut":
        return cls(
            id=inv.id,
            invoice_number=inv.invoice_number,
            tenancy_id=inv.tenancy_id,
            rental_unit_id=inv.rental_unit_id,
            tenant_id=inv.tenant_id,
            period=str(inv.period),
            due_amount=inv.due_amount,
            currency_code=inv.currency_code,
            amount_paid=inv.amount_paid,
            outstanding=inv.outstanding,
            status=inv.status,
            due_date=inv.due_date,
            created_at=inv.created_at,
            paid_at=inv.paid_at,
            notes=inv.notes,
        )


class InvoiceDetailOut(InvoiceSummaryOut):
    days_overdue: int = 0
    accrued_late_fee: Decimal = Decimal("0")


class TenancyFailureOut(BaseModel):
    tenancy_id: int
    code: str
    message: str


class GenerateMonthlyOut(BaseModel):
    period: str
    created: list[InvoiceSummaryOut]
    skipped: list[int]
    errors: list[TenancyFailureOut] = Field(default_factory=list)


class PaymentIn(BaseModel):
    amount: Decimal
    currency: str = Field(min_length=3, max_length=3)
    posted_at: Optional[datetime] = None
    convert: bool = False  # allow a foreign-currency posting to be converted at the current rate
    payment_mode: Optional[str] = None
    reference: Optional[str] = None


class MarkPaidIn(BaseModel):
    paid_at: Optional[datetime] = None
    payment_details: Optional[dict[str, Any]] = None
    notes: Optional[str] = None


class PaymentRecordOut(BaseModel):
    id: int
    invoice_id: str
    amount: Decimal
    currency_code: str
    applied_amount: Decimal
    kind: str
    payment_mode: Optional[str] = None
    reference: Optional[str] = None
    posted_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StatsErrorOut(BaseModel):
    invoice_id: str
    reason: str


class StatisticsOut(BaseModel):
    base_currency: str
    window_start: str
    window_end: str
    invoice_count: int
    total_due_base: Decimal
    total_paid_base: Decimal
    total_outstanding_base: Decimal
    count_by_status: dict[str, int]
    count_by_currency: dict[str, int]
    errors: list[StatsErrorOut] = Field(default_factory=list)


class OverdueSweepOut(BaseModel):
    checked: int
    marked_overdue: int


# -------------------- Currencies --------------------

class CurrencyOut(BaseModel):
    code: str
    name: str
    symbol: str
    exchange_rate: Decimal
    is_base: bool
    is_active: bool
    decimal_places: int

    model_config = ConfigDict(from_attributes=True)


class ConvertIn(BaseModel):
    amount: Decimal = Field(ge=0)
    from_currency: str = Field(min_length=3, max_length=3)
    to_currency: str = Field(min_length=3, max_length=3)


class ConvertOut(BaseModel):
    original_amount: Decimal
    converted_amount: Decimal
    from_currency: str
    to_currency: str


# -------------------- Scheduler --------------------

class ScheduledJobOut(BaseModel):
    name: str
    task: str
    schedule: dict[str, int]
    enabled: bool
    last_run: Optional[datetime] = None
