from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from rentledger.domain.currency import RateTable
from rentledger.domain.errors import CurrencyMismatch, InvalidAmount, Overpayment
from rentledger.domain.payment_ledger import (
    accrued_late_fee,
    apply_payment,
    mark_paid,
    recheck_overdue,
)
from rentledger.domain.types import BillingPeriod, Invoice, InvoiceStatus, PaymentPosting

RATES = RateTable.from_mapping({"MVR": 1, "USD": "15.42"}, base="MVR")
BEFORE_DUE = datetime(2024, 5, 28, 9, 0, 0)


def _invoice(due="1000", currency="MVR", paid="0", status=InvoiceStatus.PENDING, due_date=date(2024, 6, 1)) -> Invoice:
    return Invoice(
        id="inv-1",
        invoice_number="INV-2024-06-10-INV1",
        tenancy_id=1,
        rental_unit_id=10,
        tenant_id=100,
        period=BillingPeriod(2024, 6),
        due_amount=Decimal(due),
        currency_code=currency,
        amount_paid=Decimal(paid),
        status=status,
        due_date=due_date,
        created_at=datetime(2024, 5, 31),
    )


def _pay(amount, currency="MVR", at=BEFORE_DUE) -> PaymentPosting:
    return PaymentPosting(invoice_id="inv-1", amount=Decimal(str(amount)), currency_code=currency, posted_at=at)


def test_partial_then_full_payment():
    inv = apply_payment(_invoice(), _pay(400))
    assert inv.status == InvoiceStatus.PARTIALLY_PAID
    assert inv.amount_paid == Decimal("400")
    assert inv.paid_at is None

    paid_at = datetime(2024, 5, 30, 12, 0, 0)
    inv = apply_payment(inv, _pay(600, at=paid_at))
    assert inv.status == InvoiceStatus.PAID
    assert inv.amount_paid == Decimal("1000")
    assert inv.paid_at == paid_at


def test_overpayment_rejected_and_invoice_untouched():
    original = _invoice()
    with pytest.raises(Overpayment):
        apply_payment(original, _pay(1200))
    assert original.amount_paid == Decimal("0")
    assert original.status == InvoiceStatus.PENDING


def test_overpayment_within_tolerance_is_accepted():
    inv = apply_payment(_invoice(), _pay("1000.50"), tolerance=Decimal("1"))
    assert inv.status == InvoiceStatus.PAID
    assert inv.amount_paid == Decimal("1000.50")


@pytest.mark.parametrize("amount", ["0", "-10"])
def test_non_positive_amount_rejected(amount):
    with pytest.raises(InvalidAmount):
        apply_payment(_invoice(), _pay(amount))


def test_foreign_currency_needs_conversion_context():
    with pytest.raises(CurrencyMismatch):
        apply_payment(_invoice(due="1542"), _pay(100, currency="USD"))


def test_foreign_currency_converted_when_rates_given():
    inv = apply_payment(_invoice(due="1542"), _pay(100, currency="USD"), rates=RATES)
    assert inv.amount_paid == Decimal("1542.00")
    assert inv.status == InvoiceStatus.PAID


def test_recheck_marks_pending_overdue_after_due_date():
    inv = recheck_overdue(_invoice(), datetime(2024, 6, 15))
    assert inv.status == InvoiceStatus.OVERDUE


def test_recheck_is_idempotent_and_respects_due_date():
    inv = _invoice()
    assert recheck_overdue(inv, datetime(2024, 6, 1, 23, 59)) == inv  # due today, not yet late

    once = recheck_overdue(inv, datetime(2024, 6, 15))
    twice = recheck_overdue(once, datetime(2024, 6, 15))
    assert once == twice


def test_partially_paid_goes_overdue():
    inv = apply_payment(_invoice(), _pay(400))
    assert recheck_overdue(inv, date(2024, 6, 2)).status == InvoiceStatus.OVERDUE


def test_overdue_partial_payment_stays_overdue_and_full_payment_settles():
    inv = _invoice(status=InvoiceStatus.OVERDUE)
    inv = apply_payment(inv, _pay(300, at=datetime(2024, 6, 20)))
    assert inv.status == InvoiceStatus.OVERDUE
    assert inv.amount_paid == Decimal("300")

    inv = apply_payment(inv, _pay(700, at=datetime(2024, 6, 21)))
    assert inv.status == InvoiceStatus.PAID


def test_partial_payment_after_due_date_is_partially_paid_until_recheck():
    inv = apply_payment(_invoice(), _pay(400, at=datetime(2024, 6, 5)))
    assert inv.status == InvoiceStatus.PARTIALLY_PAID
    assert inv.amount_paid == Decimal("400")

    assert recheck_overdue(inv, datetime(2024, 6, 5)).status == InvoiceStatus.OVERDUE


def test_amount_finer_than_currency_precision_rejected():
    original = _invoice()
    with pytest.raises(InvalidAmount):
        apply_payment(original, _pay("0.00004"), minor_units=2)
    with pytest.raises(InvalidAmount):
        apply_payment(original, _pay("10.005"), minor_units=2)
    assert original.amount_paid == Decimal("0")

    inv = apply_payment(original, _pay("10.50"), minor_units=2)
    assert inv.amount_paid == Decimal("10.50")


def test_converted_amount_passes_precision_check():
    inv = apply_payment(_invoice(due="1542"), _pay("10.001", currency="USD"), rates=RATES, minor_units=2)
    # 10.001 * 15.42 = 154.21542
    assert inv.amount_paid == Decimal("154.22")


def test_paid_is_terminal():
    inv = apply_payment(_invoice(), _pay(1000))
    assert inv.status == InvoiceStatus.PAID

    assert recheck_overdue(inv, datetime(2030, 1, 1)).status == InvoiceStatus.PAID
    with pytest.raises(Overpayment):
        apply_payment(inv, _pay("0.01"))


def test_amount_paid_is_sum_of_postings():
    inv = _invoice()
    running = Decimal("0")
    for amt in ["100", "250.50", "0.50", "649"]:
        inv = apply_payment(inv, _pay(amt))
        running += Decimal(amt)
        assert inv.amount_paid == running
        assert (inv.status == InvoiceStatus.PAID) == (inv.amount_paid >= inv.due_amount)
    assert inv.status == InvoiceStatus.PAID


def test_mark_paid_overrides_partial_and_is_idempotent():
    inv = apply_payment(_invoice(), _pay(400))
    ts = datetime(2024, 6, 3, 8, 0, 0)

    paid = mark_paid(inv, ts)
    assert paid.status == InvoiceStatus.PAID
    assert paid.amount_paid == Decimal("1000")
    assert paid.paid_at == ts

    again = mark_paid(paid, datetime(2024, 7, 1))
    assert again is paid


def test_late_fee_accrues_per_day_only_while_unpaid():
    overdue = _invoice(status=InvoiceStatus.OVERDUE)
    assert accrued_late_fee(overdue, date(2024, 6, 11), Decimal("10")) == Decimal("100")
    assert accrued_late_fee(overdue, date(2024, 5, 20), Decimal("10")) == Decimal("0")

    settled = mark_paid(overdue, datetime(2024, 6, 12))
    assert accrued_late_fee(settled, date(2024, 6, 30), Decimal("10")) == Decimal("0")
