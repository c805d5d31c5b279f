from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, desc
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.currency import CurrencyRate, RateTable
from ..domain.errors import InvariantViolation, NotFound
from ..domain.types import BillingPeriod, Invoice, InvoiceStatus, PaymentPosting, Tenancy
from ..models import Currency, PaymentRecord, RentInvoice, Tenancy as TenancyRow

# -----------------------------------------------------------------------------
# Persistence collaborator for the invoicing core.
#
# Everything here is I/O: rows in, domain values out (and back). No rule about
# what an invoice may do lives in this module; that is domain/.
# -----------------------------------------------------------------------------


def _period_ordinal(period: BillingPeriod) -> int:
    return period.year * 12 + period.month


def _row_ordinal():
    return RentInvoice.period_year * 12 + RentInvoice.period_month


def to_domain(row: RentInvoice) -> Invoice:
    return Invoice(
        id=row.id,
        invoice_number=row.invoice_number,
        tenancy_id=int(row.tenancy_id),
        rental_unit_id=int(row.rental_unit_id),
        tenant_id=int(row.tenant_id),
        period=BillingPeriod(int(row.period_year), int(row.period_month)),
        due_amount=Decimal(row.due_amount),
        currency_code=row.currency_code,
        amount_paid=Decimal(row.amount_paid or 0),
        status=InvoiceStatus(row.status),
        due_date=row.due_date,
        created_at=row.created_at,
        paid_at=row.paid_at,
        notes=row.notes,
    )


def tenancy_to_domain(row: TenancyRow) -> Tenancy:
    return Tenancy(
        id=int(row.id),
        rental_unit_id=int(row.rental_unit_id),
        tenant_id=int(row.tenant_id),
        monthly_rent=Decimal(row.monthly_rent) if row.monthly_rent is not None else None,
        currency_code=row.currency_code,
        lease_start=row.lease_start,
        lease_end=row.lease_end,
        active=bool(row.is_active),
    )


# ---- Tenancy source ----

def active_tenancies(db: Session, *, as_of: date) -> list[Tenancy]:
    q = (
        select(TenancyRow)
        .where(TenancyRow.is_active.is_(True), TenancyRow.lease_start <= as_of)
        .order_by(TenancyRow.id)
    )
    return [tenancy_to_domain(r) for r in db.scalars(q).all()]


# ---- Rate table source ----

def rate_table(db: Session, *, base: Optional[str] = None) -> RateTable:
    base_code = (base or settings.base_currency).strip().upper()
    rows = db.scalars(select(Currency).where(Currency.is_active.is_(True))).all()

    rates: dict[str, CurrencyRate] = {}
    for r in rows:
        code = r.code.strip().upper()
        if r.is_base and code != base_code:
            raise InvariantViolation(f"currency {code} is flagged as base but configured base is {base_code}")
        rates[code] = CurrencyRate(rate=Decimal(r.exchange_rate), minor_units=int(r.decimal_places))

    rates.setdefault(base_code, CurrencyRate(rate=Decimal("1")))
    return RateTable(base=base_code, rates=rates)


# ---- Invoice store ----

def existing_index(db: Session, *, period: BillingPeriod) -> set[tuple[int, BillingPeriod]]:
    q = select(RentInvoice.tenancy_id).where(
        RentInvoice.period_year == period.year,
        RentInvoice.period_month == period.month,
    )
    return {(int(tid), period) for tid in db.scalars(q).all()}


def find_by_tenancy_period(db: Session, *, tenancy_id: int, period: BillingPeriod) -> Optional[Invoice]:
    row = db.scalar(
        select(RentInvoice).where(
            RentInvoice.tenancy_id == tenancy_id,
            RentInvoice.period_year == period.year,
            RentInvoice.period_month == period.month,
        )
    )
    return to_domain(row) if row else None


def must_get_row(db: Session, *, invoice_id: str, for_update: bool = False) -> RentInvoice:
    q = select(RentInvoice).where(RentInvoice.id == invoice_id)
    if for_update:
        # serializes postings against one invoice (ignored by SQLite)
        q = q.with_for_update()
    row = db.scalar(q)
    if not row:
        raise NotFound(f"invoice {invoice_id} not found", details={"invoice_id": invoice_id})
    return row


def get_invoice(db: Session, *, invoice_id: str, for_update: bool = False) -> Invoice:
    return to_domain(must_get_row(db, invoice_id=invoice_id, for_update=for_update))


def insert_invoice(db: Session, inv: Invoice) -> RentInvoice:
    row = RentInvoice(
        id=inv.id,
        invoice_number=inv.invoice_number,
        tenancy_id=inv.tenancy_id,
        rental_unit_id=inv.rental_unit_id,
        tenant_id=inv.tenant_id,
        period_year=inv.period.year,
        period_month=inv.period.month,
        due_amount=inv.due_amount,
        currency_code=inv.currency_code,
        amount_paid=inv.amount_paid,
        status=inv.status.value,
        due_date=inv.due_date,
        created_at=inv.created_at,
        paid_at=inv.paid_at,
        notes=inv.notes,
    )
    db.add(row)
    db.flush()
    return row


def update_invoice(db: Session, inv: Invoice) -> RentInvoice:
    """Writes only the fields the ledger is allowed to change."""
    row = must_get_row(db, invoice_id=inv.id)
    row.amount_paid = inv.amount_paid
    row.status = inv.status.value
    row.paid_at = inv.paid_at
    row.notes = inv.notes
    db.add(row)
    db.flush()
    return row


def scan_by_period(db: Session, *, start: BillingPeriod, end: BillingPeriod) -> list[Invoice]:
    q = (
        select(RentInvoice)
        .where(_row_ordinal().between(_period_ordinal(start), _period_ordinal(end)))
        .order_by(RentInvoice.period_year, RentInvoice.period_month, RentInvoice.created_at)
    )
    return [to_domain(r) for r in db.scalars(q).all()]


def list_invoices(
    db: Session,
    *,
    status: Optional[InvoiceStatus] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    tenant_id: Optional[int] = None,
    limit: int = 500,
) -> list[Invoice]:
    q = select(RentInvoice)
    if status is not None:
        q = q.where(RentInvoice.status == status.value)
    if year is not None:
        q = q.where(RentInvoice.period_year == year)
    if month is not None:
        q = q.where(RentInvoice.period_month == month)
    if tenant_id is not None:
        q = q.where(RentInvoice.tenant_id == tenant_id)

    q = q.order_by(desc(RentInvoice.period_year), desc(RentInvoice.period_month), RentInvoice.invoice_number).limit(limit)
    return [to_domain(r) for r in db.scalars(q).all()]


def open_invoices(db: Session) -> list[Invoice]:
    q = select(RentInvoice).where(
        RentInvoice.status.in_([InvoiceStatus.PENDING.value, InvoiceStatus.PARTIALLY_PAID.value])
    )
    return [to_domain(r) for r in db.scalars(q).all()]


# ---- Payment history ----

def add_payment_record(
    db: Session,
    *,
    posting: PaymentPosting,
    applied_amount: Decimal,
    kind: str = "posting",
) -> PaymentRecord:
    row = PaymentRecord(
        invoice_id=posting.invoice_id,
        amount=posting.amount,
        currency_code=posting.currency_code,
        applied_amount=applied_amount,
        kind=kind,
        payment_mode=posting.payment_mode,
        reference=posting.reference,
        posted_at=posting.posted_at,
    )
    db.add(row)
    db.flush()
    return row


def list_payments(db: Session, *, invoice_id: str) -> list[PaymentRecord]:
    must_get_row(db, invoice_id=invoice_id)
    q = select(PaymentRecord).where(PaymentRecord.invoice_id == invoice_id).order_by(PaymentRecord.id)
    return list(db.scalars(q).all())
