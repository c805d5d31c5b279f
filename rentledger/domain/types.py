from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class InvoiceStatus(str, Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


@dataclass(frozen=True, order=True)
class BillingPeriod:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= int(self.month) <= 12:
            raise ValueError(f"month must be 1..12, got {self.month}")
        if not 1 <= int(self.year) <= 9999:
            raise ValueError(f"year out of range: {self.year}")

    @classmethod
    def parse(cls, s: str) -> "BillingPeriod":
        """Accepts 'YYYY-MM'."""
        try:
            y, m = [int(x) for x in str(s).strip().split("-")]
        except ValueError as e:
            raise ValueError(f"billing period must look like YYYY-MM, got {s!r}") from e
        return cls(y, m)

    @classmethod
    def of(cls, d: date) -> "BillingPeriod":
        return cls(d.year, d.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def day(self, dom: int) -> date:
        """Day-of-month clamped to this month's length."""
        last = calendar.monthrange(self.year, self.month)[1]
        return date(self.year, self.month, max(1, min(int(dom), last)))

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class Tenancy:
    id: int
    rental_unit_id: int
    tenant_id: int
    monthly_rent: Optional[Decimal]
    currency_code: Optional[str]
    lease_start: date
    lease_end: Optional[date] = None
    active: bool = True


@dataclass(frozen=True)
class Invoice:
    id: str
    invoice_number: str
    tenancy_id: int
    rental_unit_id: int
    tenant_id: int
    period: BillingPeriod
    due_amount: Decimal
    currency_code: str
    amount_paid: Decimal
    status: InvoiceStatus
    due_date: date
    created_at: datetime
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def outstanding(self) -> Decimal:
        return max(Decimal("0"), self.due_amount - self.amount_paid)

    def model_dump(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "tenancy_id": self.tenancy_id,
            "rental_unit_id": self.rental_unit_id,
            "tenant_id": self.tenant_id,
            "period": str(self.period),
            "due_amount": str(self.due_amount),
            "currency_code": self.currency_code,
            "amount_paid": str(self.amount_paid),
            "status": self.status.value,
            "due_date": self.due_date.isoformat(),
            "created_at": self.created_at.isoformat(),
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }


@dataclass(frozen=True)
class PaymentPosting:
    invoice_id: str
    amount: Decimal
    currency_code: str
    posted_at: datetime
    payment_mode: Optional[str] = None
    reference: Optional[str] = None


@dataclass(frozen=True)
class TenancyFailure:
    tenancy_id: int
    code: str
    message: str


@dataclass(frozen=True)
class GenerationResult:
    period: BillingPeriod
    created: list[Invoice] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failures: list[TenancyFailure] = field(default_factory=list)
