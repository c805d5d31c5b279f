from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..domain import invoice_stats, payment_ledger
from ..domain.audit import audit_write
from ..domain.currency import to_decimal
from ..domain.errors import DuplicateInvoice, InvoicingError
from ..domain.invoice_generator import generate_monthly_invoices
from ..domain.types import (
    BillingPeriod,
    GenerationResult,
    Invoice,
    InvoiceStatus,
    PaymentPosting,
    TenancyFailure,
)
from ..logging_config import log_context
from . import invoice_store as store

log = logging.getLogger("rentledger.lifecycle")


def _utcnow() -> datetime:
    return datetime.utcnow()


@dataclass(frozen=True)
class OverdueSweep:
    checked: int
    marked_overdue: int


def generate_monthly(db: Session, *, period: BillingPeriod, now: Optional[datetime] = None) -> GenerationResult:
    """
    Create this period's invoices for every billable tenancy.

    Callers should not run two generations for the same period at once; if
    they do, the (tenancy, period) unique constraint catches the loser and the
    tenancy is reported as a DuplicateInvoice failure instead of failing the batch.
    """
    now = now or _utcnow()
    rates = store.rate_table(db)

    planned = generate_monthly_invoices(
        store.active_tenancies(db, as_of=period.last_day),
        period,
        store.existing_index(db, period=period),
        due_day=settings.invoice_due_day,
        created_at=now,
        known_currencies=set(rates.codes()),
    )

    created: list[Invoice] = []
    failures: list[TenancyFailure] = list(planned.failures)
    for inv in planned.created:
        try:
            with db.begin_nested():
                store.insert_invoice(db, inv)
        except IntegrityError:
            err = DuplicateInvoice(f"invoice for tenancy {inv.tenancy_id} in {period} already exists")
            log.warning(
                "uniqueness backstop fired during generation",
                extra={"tenancy_id": inv.tenancy_id, "period": str(period)},
            )
            failures.append(TenancyFailure(tenancy_id=inv.tenancy_id, code=err.code, message=err.message))
            continue
        created.append(inv)

    result = GenerationResult(period=period, created=created, skipped=list(planned.skipped), failures=failures)

    audit_write(
        db,
        action="invoice.generate_monthly",
        entity_type="BillingPeriod",
        entity_id=str(period),
        after={
            "created": [i.id for i in result.created],
            "skipped": result.skipped,
            "failures": [{"tenancy_id": f.tenancy_id, "code": f.code} for f in result.failures],
        },
    )
    db.commit()

    log.info(
        "monthly invoices generated: created=%d skipped=%d failed=%d",
        len(result.created),
        len(result.skipped),
        len(result.failures),
        extra={"period": str(period)},
    )
    return result


def record_payment(
    db: Session,
    *,
    invoice_id: str,
    amount: Any,
    currency: str,
    posted_at: Optional[datetime] = None,
    convert: bool = False,
    payment_mode: Optional[str] = None,
    reference: Optional[str] = None,
) -> Invoice:
    with log_context(invoice_id=invoice_id):
        row = store.must_get_row(db, invoice_id=invoice_id, for_update=True)
        before = store.to_domain(row)

        posting = PaymentPosting(
            invoice_id=invoice_id,
            amount=to_decimal(amount),
            currency_code=(currency or "").strip().upper(),
            posted_at=posted_at or _utcnow(),
            payment_mode=payment_mode,
            reference=reference,
        )

        try:
            rates = store.rate_table(db)
            after = payment_ledger.apply_payment(
                before,
                posting,
                rates=rates if convert else None,
                tolerance=settings.overpayment_tolerance,
                minor_units=rates.get(before.currency_code).minor_units,
            )
        except InvoicingError as e:
            db.rollback()
            log.warning("payment rejected: %s", e.message, extra={"error_code": e.code})
            raise

        store.update_invoice(db, after)
        store.add_payment_record(db, posting=posting, applied_amount=after.amount_paid - before.amount_paid)
        audit_write(
            db,
            action="invoice.payment",
            entity_type="RentInvoice",
            entity_id=invoice_id,
            before=before.model_dump(),
            after=after.model_dump(),
        )
        db.commit()
        return after


def mark_paid(
    db: Session,
    *,
    invoice_id: str,
    paid_at: Optional[datetime] = None,
    payment_details: Optional[dict[str, Any]] = None,
    notes: Optional[str] = None,
) -> Invoice:
    with log_context(invoice_id=invoice_id):
        row = store.must_get_row(db, invoice_id=invoice_id, for_update=True)
        before = store.to_domain(row)

        if before.status == InvoiceStatus.PAID:
            # terminal; re-marking is a no-op
            db.rollback()
            return before

        ts = paid_at or _utcnow()
        after = payment_ledger.mark_paid(before, ts)
        if notes:
            after = replace(after, notes=notes)

        details = payment_details or {}
        store.update_invoice(db, after)

        settled = after.amount_paid - before.amount_paid
        if settled > 0:
            store.add_payment_record(
                db,
                posting=PaymentPosting(
                    invoice_id=invoice_id,
                    amount=settled,
                    currency_code=after.currency_code,
                    posted_at=ts,
                    payment_mode=details.get("payment_mode"),
                    reference=details.get("reference"),
                ),
                applied_amount=settled,
                kind="manual",
            )

        audit_write(
            db,
            action="invoice.mark_paid",
            entity_type="RentInvoice",
            entity_id=invoice_id,
            before=before.model_dump(),
            after={**after.model_dump(), "payment_details": details},
        )
        db.commit()
        log.info("invoice marked paid")
        return after


def get_statistics(
    db: Session,
    *,
    window_start: BillingPeriod,
    window_end: BillingPeriod,
) -> invoice_stats.InvoiceStatistics:
    rates = store.rate_table(db)
    invoices = store.scan_by_period(db, start=window_start, end=window_end)
    stats = invoice_stats.aggregate(invoices, window_start, window_end, rates)
    if stats.errors:
        log.warning("statistics skipped %d invoices with unknown currency", len(stats.errors))
    return stats


def recheck_overdue_all(db: Session, *, now: Optional[datetime] = None) -> OverdueSweep:
    """Run by the scheduler; safe to call any number of times."""
    now = now or _utcnow()
    checked = 0
    marked = 0

    for inv in store.open_invoices(db):
        checked += 1
        updated = payment_ledger.recheck_overdue(inv, now)
        if updated.status == inv.status:
            continue
        store.update_invoice(db, updated)
        audit_write(
            db,
            action="invoice.overdue",
            entity_type="RentInvoice",
            entity_id=inv.id,
            before={"status": inv.status.value},
            after={"status": updated.status.value},
        )
        marked += 1

    audit_write(
        db,
        action="invoice.overdue_sweep",
        entity_type="Scheduler",
        entity_id=now.date().isoformat(),
        after={"checked": checked, "marked_overdue": marked},
    )
    db.commit()
    if marked:
        log.info("overdue sweep marked %d of %d open invoices", marked, checked)
    return OverdueSweep(checked=checked, marked_overdue=marked)


def late_fee_for(invoice: Invoice, *, as_of: Optional[datetime] = None) -> Decimal:
    return payment_ledger.accrued_late_fee(invoice, as_of or _utcnow(), settings.late_fee_per_day)
