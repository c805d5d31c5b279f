from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from .currency import RateTable, convert, quantize, to_decimal
from .errors import CurrencyMismatch, InvalidAmount, Overpayment
from .types import Invoice, InvoiceStatus, PaymentPosting

log = logging.getLogger("rentledger.ledger")

# -----------------------------------------------------------------------------
# Invoice status machine
# -----------------------------------------------------------------------------
#   PENDING        --payment reaches due-->    PAID
#   PENDING        --partial payment-->        PARTIALLY_PAID
#   PENDING        --due date passes-->        OVERDUE
#   PARTIALLY_PAID --payment reaches due-->    PAID
#   PARTIALLY_PAID --due date passes-->        OVERDUE
#   OVERDUE        --payment reaches due-->    PAID
#
# PAID is terminal. Every function returns a new Invoice; the input is never
# touched, so a rejected posting can't leave partial state behind.
# -----------------------------------------------------------------------------

ZERO = Decimal("0")


def _as_of(ts: datetime | date) -> date:
    return ts.date() if isinstance(ts, datetime) else ts


def _status_after_payment(invoice: Invoice, paid: Decimal) -> InvoiceStatus:
    if paid >= invoice.due_amount:
        return InvoiceStatus.PAID
    # only the overdue recheck moves an invoice into OVERDUE; a partial payment keeps it there
    if invoice.status == InvoiceStatus.OVERDUE:
        return InvoiceStatus.OVERDUE
    if paid > ZERO:
        return InvoiceStatus.PARTIALLY_PAID
    return invoice.status


def posting_amount_in_invoice_currency(
    invoice: Invoice,
    posting: PaymentPosting,
    rates: Optional[RateTable] = None,
    minor_units: Optional[int] = None,
) -> Decimal:
    amount = to_decimal(posting.amount)
    if amount <= ZERO:
        raise InvalidAmount("payment amount must be > 0", details={"amount": str(amount)})

    src = (posting.currency_code or "").strip().upper()
    if src == invoice.currency_code:
        if minor_units is not None and amount != quantize(amount, minor_units):
            raise InvalidAmount(
                f"payment amount has more than {minor_units} decimal places for {src}",
                details={"amount": str(amount), "minor_units": minor_units},
            )
        return amount

    if rates is None:
        raise CurrencyMismatch(
            f"payment currency {src} does not match invoice currency {invoice.currency_code}",
            details={"invoice_currency": invoice.currency_code, "payment_currency": src},
        )
    converted = convert(amount, src, invoice.currency_code, rates)
    if converted <= ZERO:
        raise InvalidAmount("payment amount rounds to zero in invoice currency", details={"amount": str(amount)})
    return converted


def apply_payment(
    invoice: Invoice,
    posting: PaymentPosting,
    *,
    rates: Optional[RateTable] = None,
    tolerance: Decimal = ZERO,
    minor_units: Optional[int] = None,
) -> Invoice:
    """
    Apply one posting.

    minor_units, when given, is the invoice currency's precision; a same-currency
    amount finer than that is rejected rather than silently rounded by storage.
    Converted amounts are already rounded to it by the normalizer.

    Raises InvalidAmount (<= 0 or too precise), CurrencyMismatch (foreign currency and no
    rates to convert with) or Overpayment (paid would exceed due + tolerance).
    """
    amount = posting_amount_in_invoice_currency(invoice, posting, rates, minor_units)

    paid = invoice.amount_paid + amount
    if paid > invoice.due_amount + tolerance:
        raise Overpayment(
            f"payment of {amount} {invoice.currency_code} exceeds outstanding {invoice.outstanding}",
            details={
                "due_amount": str(invoice.due_amount),
                "amount_paid": str(invoice.amount_paid),
                "attempted": str(amount),
            },
        )

    status = _status_after_payment(invoice, paid)
    paid_at = invoice.paid_at
    if status == InvoiceStatus.PAID and invoice.status != InvoiceStatus.PAID:
        paid_at = posting.posted_at

    log.info(
        "payment applied",
        extra={"invoice_id": invoice.id, "period": str(invoice.period)},
    )
    return replace(invoice, amount_paid=paid, status=status, paid_at=paid_at)


def mark_paid(invoice: Invoice, timestamp: datetime) -> Invoice:
    """Administrative override for money settled outside the ledger (cash etc.)."""
    if invoice.status == InvoiceStatus.PAID:
        return invoice
    return replace(invoice, status=InvoiceStatus.PAID, amount_paid=invoice.due_amount, paid_at=timestamp)


def recheck_overdue(invoice: Invoice, now: datetime | date) -> Invoice:
    if invoice.status not in (InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID):
        return invoice
    if _as_of(now) > invoice.due_date and invoice.amount_paid < invoice.due_amount:
        return replace(invoice, status=InvoiceStatus.OVERDUE)
    return invoice


def days_overdue(invoice: Invoice, as_of: datetime | date) -> int:
    if invoice.status == InvoiceStatus.PAID or invoice.amount_paid >= invoice.due_amount:
        return 0
    return max(0, (_as_of(as_of) - invoice.due_date).days)


def accrued_late_fee(invoice: Invoice, as_of: datetime | date, per_day: Decimal) -> Decimal:
    # informational; never folded into due_amount
    return Decimal(days_overdue(invoice, as_of)) * to_decimal(per_day, field="late_fee_per_day")
