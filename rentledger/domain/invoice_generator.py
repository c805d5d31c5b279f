from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Collection, Iterable, Optional

from .currency import to_decimal
from .errors import InvalidAmount, InvoicingError, UnknownCurrency
from .types import (
    BillingPeriod,
    GenerationResult,
    Invoice,
    InvoiceStatus,
    Tenancy,
    TenancyFailure,
)

log = logging.getLogger("rentledger.invoicing")

InvoiceKey = tuple[int, BillingPeriod]


def _new_id() -> str:
    return str(uuid.uuid4())


def invoice_number(period: BillingPeriod, rental_unit_id: int, invoice_id: str) -> str:
    return f"INV-{period.year:04d}-{period.month:02d}-{rental_unit_id}-{invoice_id.replace('-', '')[:8].upper()}"


def is_billable(tenancy: Tenancy, period: BillingPeriod) -> bool:
    """Active and the lease overlaps the period at all."""
    if not tenancy.active:
        return False
    if tenancy.lease_start > period.last_day:
        return False
    if tenancy.lease_end is not None and tenancy.lease_end < period.first_day:
        return False
    return True


def compute_due_date(tenancy: Tenancy, period: BillingPeriod, due_day: int) -> date:
    """
    Fixed day-of-month, except in the lease-start month when the lease
    begins after that day: rent can't fall due before the tenant moves in.
    """
    due = period.day(due_day)
    if BillingPeriod.of(tenancy.lease_start) == period and tenancy.lease_start > due:
        return tenancy.lease_start
    return due


def _validated_terms(tenancy: Tenancy, known_currencies: Optional[Collection[str]]) -> tuple[Decimal, str]:
    code = (tenancy.currency_code or "").strip().upper()
    if not code:
        raise UnknownCurrency("tenancy has no billing currency")
    if known_currencies is not None and code not in known_currencies:
        raise UnknownCurrency(f"tenancy billing currency {code} is not configured")

    if tenancy.monthly_rent is None:
        raise InvalidAmount("tenancy has no monthly rent")
    rent = to_decimal(tenancy.monthly_rent, field="monthly_rent")
    if rent <= 0:
        raise InvalidAmount("tenancy monthly rent must be positive", details={"monthly_rent": str(rent)})
    return rent, code


def generate_monthly_invoices(
    tenancies: Iterable[Tenancy],
    period: BillingPeriod,
    existing_index: Collection[InvoiceKey],
    *,
    due_day: int = 1,
    created_at: datetime,
    id_factory: Callable[[], str] = _new_id,
    known_currencies: Optional[Collection[str]] = None,
) -> GenerationResult:
    """
    One PENDING invoice per billable tenancy for `period`.

    existing_index holds (tenancy_id, period) keys already invoiced; those
    tenancies are reported in `skipped`, so running this twice over the same
    snapshot creates nothing the second time. A tenancy with bad terms is
    reported in `failures` and the rest of the batch carries on.
    Created invoices keep the input order.
    """
    result = GenerationResult(period=period)
    seen: set[InvoiceKey] = set()

    for t in tenancies:
        if not is_billable(t, period):
            log.debug("tenancy not billable", extra={"tenancy_id": t.id, "period": str(period)})
            continue

        key = (t.id, period)
        if key in existing_index or key in seen:
            result.skipped.append(t.id)
            continue

        try:
            rent, code = _validated_terms(t, known_currencies)
        except InvoicingError as e:
            log.warning(
                "invoice generation failed for tenancy",
                extra={"tenancy_id": t.id, "period": str(period), "error_code": e.code},
            )
            result.failures.append(TenancyFailure(tenancy_id=t.id, code=e.code, message=e.message))
            continue

        inv_id = id_factory()
        result.created.append(
            Invoice(
                id=inv_id,
                invoice_number=invoice_number(period, t.rental_unit_id, inv_id),
                tenancy_id=t.id,
                rental_unit_id=t.rental_unit_id,
                tenant_id=t.tenant_id,
                period=period,
                due_amount=rent,
                currency_code=code,
                amount_paid=Decimal("0"),
                status=InvoiceStatus.PENDING,
                due_date=compute_due_date(t, period, due_day),
                created_at=created_at,
                notes=f"Monthly rent for {period}",
            )
        )
        seen.add(key)

    return result
