from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from .currency import RateTable, quantize, to_base
from .errors import UnknownCurrency
from .types import BillingPeriod, Invoice, InvoiceStatus


@dataclass(frozen=True)
class StatsError:
    invoice_id: str
    reason: str


@dataclass(frozen=True)
class InvoiceStatistics:
    base_currency: str
    window_start: BillingPeriod
    window_end: BillingPeriod
    invoice_count: int
    total_due_base: Decimal
    total_paid_base: Decimal
    count_by_status: dict[str, int]
    count_by_currency: dict[str, int]
    errors: list[StatsError] = field(default_factory=list)

    @property
    def total_outstanding_base(self) -> Decimal:
        return max(Decimal("0"), self.total_due_base - self.total_paid_base)

    def as_dict(self) -> dict:
        return {
            "base_currency": self.base_currency,
            "window_start": str(self.window_start),
            "window_end": str(self.window_end),
            "invoice_count": self.invoice_count,
            "total_due_base": self.total_due_base,
            "total_paid_base": self.total_paid_base,
            "total_outstanding_base": self.total_outstanding_base,
            "count_by_status": dict(self.count_by_status),
            "count_by_currency": dict(self.count_by_currency),
            "errors": [{"invoice_id": e.invoice_id, "reason": e.reason} for e in self.errors],
        }


def aggregate(
    invoices: Iterable[Invoice],
    window_start: BillingPeriod,
    window_end: BillingPeriod,
    rates: RateTable,
) -> InvoiceStatistics:
    """
    Tally invoices whose billing period is in [window_start, window_end].

    Counts include every invoice in the window. Sums are in base currency;
    an invoice whose currency isn't in the rate table is left out of the sums
    and listed in `errors` instead of failing the whole call.
    """
    if window_start > window_end:
        raise ValueError(f"window start {window_start} is after window end {window_end}")

    base_minor = rates.get(rates.base).minor_units
    due_total = Decimal("0")
    paid_total = Decimal("0")
    by_status = {s.value: 0 for s in InvoiceStatus}
    by_currency: dict[str, int] = {}
    errors: list[StatsError] = []
    count = 0

    for inv in invoices:
        if not (window_start <= inv.period <= window_end):
            continue

        count += 1
        by_status[inv.status.value] = by_status.get(inv.status.value, 0) + 1
        by_currency[inv.currency_code] = by_currency.get(inv.currency_code, 0) + 1

        try:
            due = to_base(inv.due_amount, inv.currency_code, rates)
            paid = to_base(inv.amount_paid, inv.currency_code, rates)
        except UnknownCurrency as e:
            errors.append(StatsError(invoice_id=inv.id, reason=e.code))
            continue

        due_total += due
        paid_total += paid

    return InvoiceStatistics(
        base_currency=rates.base,
        window_start=window_start,
        window_end=window_end,
        invoice_count=count,
        total_due_base=quantize(due_total, base_minor),
        total_paid_base=quantize(paid_total, base_minor),
        count_by_status=by_status,
        count_by_currency=dict(sorted(by_currency.items())),
        errors=errors,
    )
