from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..domain import currency as normalizer
from ..models import Currency
from ..schemas import ConvertIn, ConvertOut, CurrencyOut
from ..services import invoice_store as store

router = APIRouter(prefix="/currencies", tags=["currencies"])


@router.get("", response_model=list[CurrencyOut])
def list_currencies(
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    q = select(Currency)
    if active_only:
        q = q.where(Currency.is_active.is_(True))
    return list(db.scalars(q.order_by(Currency.code)).all())


@router.get("/base", response_model=CurrencyOut)
def base_currency(db: Session = Depends(get_db)):
    row = db.scalar(select(Currency).where(Currency.code == settings.base_currency))
    if not row:
        raise HTTPException(status_code=404, detail=f"base currency {settings.base_currency} is not configured")
    return row


@router.post("/convert", response_model=ConvertOut)
def convert(payload: ConvertIn, db: Session = Depends(get_db)):
    rates = store.rate_table(db)
    out = normalizer.convert(payload.amount, payload.from_currency, payload.to_currency, rates)
    return ConvertOut(
        original_amount=payload.amount,
        converted_amount=out,
        from_currency=payload.from_currency.upper(),
        to_currency=payload.to_currency.upper(),
    )
