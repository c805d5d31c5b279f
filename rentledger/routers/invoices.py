from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..domain.payment_ledger import days_overdue
from ..domain.types import BillingPeriod, InvoiceStatus
from ..schemas import (
    BillingPeriodIn,
    GenerateMonthlyOut,
    InvoiceDetailOut,
    InvoiceSummaryOut,
    MarkPaidIn,
    OverdueSweepOut,
    PaymentIn,
    PaymentRecordOut,
    StatisticsOut,
    TenancyFailureOut,
)
from ..services import invoice_lifecycle as lifecycle
from ..services import invoice_store as store

router = APIRouter(prefix="/rent-invoices", tags=["rent-invoices"])


def _parse_period(value: Optional[str], *, name: str) -> BillingPeriod:
    if not value:
        return BillingPeriod.of(datetime.utcnow().date())
    try:
        return BillingPeriod.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"{name}: {e}")


@router.get("", response_model=list[InvoiceSummaryOut])
def list_invoices(
    status: Optional[InvoiceStatus] = Query(default=None),
    year: Optional[int] = Query(default=None, ge=2000, le=2200),
    month: Optional[int] = Query(default=None, ge=1, le=12),
    tenant_id: Optional[int] = Query(default=None),
    limit: int = Query(default=500, ge=1, le=2000),
    db: Session = Depends(get_db),
):
    rows = store.list_invoices(db, status=status, year=year, month=month, tenant_id=tenant_id, limit=limit)
    return [InvoiceSummaryOut.from_invoice(i) for i in rows]


@router.post("/generate-monthly", response_model=GenerateMonthlyOut)
def generate_monthly(payload: BillingPeriodIn, db: Session = Depends(get_db)):
    period = BillingPeriod(payload.year, payload.month)
    res = lifecycle.generate_monthly(db, period=period)
    return GenerateMonthlyOut(
        period=str(res.period),
        created=[InvoiceSummaryOut.from_invoice(i) for i in res.created],
        skipped=res.skipped,
        errors=[TenancyFailureOut(tenancy_id=f.tenancy_id, code=f.code, message=f.message) for f in res.failures],
    )


@router.get("/statistics", response_model=StatisticsOut)
def get_statistics(
    start: Optional[str] = Query(default=None, description="YYYY-MM, inclusive"),
    end: Optional[str] = Query(default=None, description="YYYY-MM, inclusive"),
    db: Session = Depends(get_db),
):
    window_start = _parse_period(start, name="start")
    window_end = _parse_period(end, name="end") if end else window_start
    if window_start > window_end:
        raise HTTPException(status_code=422, detail="start must not be after end")

    stats = lifecycle.get_statistics(db, window_start=window_start, window_end=window_end)
    return StatisticsOut(**stats.as_dict())


@router.post("/recheck-overdue", response_model=OverdueSweepOut)
def recheck_overdue(db: Session = Depends(get_db)):
    sweep = lifecycle.recheck_overdue_all(db)
    return OverdueSweepOut(checked=sweep.checked, marked_overdue=sweep.marked_overdue)


@router.get("/{invoice_id}", response_model=InvoiceDetailOut)
def get_invoice(invoice_id: str, db: Session = Depends(get_db)):
    inv = store.get_invoice(db, invoice_id=invoice_id)
    now = datetime.utcnow()
    return InvoiceDetailOut(
        **InvoiceSummaryOut.from_invoice(inv).model_dump(),
        days_overdue=days_overdue(inv, now),
        accrued_late_fee=lifecycle.late_fee_for(inv, as_of=now),
    )


@router.post("/{invoice_id}/payments", response_model=InvoiceSummaryOut)
def record_payment(invoice_id: str, payload: PaymentIn, db: Session = Depends(get_db)):
    inv = lifecycle.record_payment(
        db,
        invoice_id=invoice_id,
        amount=payload.amount,
        currency=payload.currency,
        posted_at=payload.posted_at,
        convert=payload.convert,
        payment_mode=payload.payment_mode,
        reference=payload.reference,
    )
    return InvoiceSummaryOut.from_invoice(inv)


@router.get("/{invoice_id}/payments", response_model=list[PaymentRecordOut])
def list_payments(invoice_id: str, db: Session = Depends(get_db)):
    return store.list_payments(db, invoice_id=invoice_id)


@router.patch("/{invoice_id}/mark-paid", response_model=InvoiceSummaryOut)
def mark_paid(invoice_id: str, payload: Optional[MarkPaidIn] = None, db: Session = Depends(get_db)):
    body = payload or MarkPaidIn()
    inv = lifecycle.mark_paid(
        db,
        invoice_id=invoice_id,
        paid_at=body.paid_at,
        payment_details=body.payment_details,
        notes=body.notes,
    )
    return InvoiceSummaryOut.from_invoice(inv)
