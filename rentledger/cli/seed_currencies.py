from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from ..config import settings
from ..db import SessionLocal
from ..domain.currency import to_decimal
from ..models import Currency


@dataclass(frozen=True)
class SeedResult:
    base: str
    created: list[str]
    updated: list[str]


def parse_rate_arg(raw: str) -> tuple[str, Decimal]:
    """'USD=15.42' -> ('USD', Decimal('15.42'))"""
    code, sep, value = raw.partition("=")
    if not sep or len(code.strip()) != 3:
        raise ValueError(f"expected CODE=RATE, got {raw!r}")
    return code.strip().upper(), to_decimal(value, field=f"rate[{code}]")


def _upsert(db: Session, code: str, rate: Decimal, *, is_base: bool) -> bool:
    row = db.query(Currency).filter(Currency.code == code).one_or_none()
    if row:
        row.exchange_rate = rate
        row.is_base = is_base
        row.is_active = True
        row.updated_at = datetime.utcnow()
        return False
    db.add(Currency(code=code, name=code, symbol=code, exchange_rate=rate, is_base=is_base, decimal_places=2))
    return True


def seed_currencies(rates: Iterable[tuple[str, Decimal]]) -> SeedResult:
    base = settings.base_currency
    created: list[str] = []
    updated: list[str] = []

    db = SessionLocal()
    try:
        # exactly one base row; a previous BASE_CURRENCY must give up the flag
        for stale in db.query(Currency).filter(Currency.is_base.is_(True), Currency.code != base).all():
            stale.is_base = False
            stale.updated_at = datetime.utcnow()

        pairs = [(base, Decimal("1"))] + [(c, r) for c, r in rates if c != base]
        for code, rate in pairs:
            if rate <= 0:
                raise ValueError(f"rate for {code} must be positive")
            (created if _upsert(db, code, rate, is_base=(code == base)) else updated).append(code)
        db.commit()
    finally:
        db.close()

    return SeedResult(base=base, created=created, updated=updated)
