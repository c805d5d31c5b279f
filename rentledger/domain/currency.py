from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Mapping, Optional

from .errors import InvalidAmount, InvariantViolation, UnknownCurrency

# Rates are stored to 6 places and amounts to at most 4; 34 significant
# digits keeps the intermediate product exact for any realistic amount.
WORKING_PRECISION = 34


def to_decimal(x: object, *, field: str = "amount") -> Decimal:
    """
    Coerce user input into a finite Decimal.
    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    """
    if isinstance(x, Decimal):
        d = x
    elif isinstance(x, bool):
        raise InvalidAmount(f"{field} must be numeric")
    elif isinstance(x, (int, str)):
        try:
            d = Decimal(str(x).strip())
        except InvalidOperation as e:
            raise InvalidAmount(f"{field} is not a number: {x!r}") from e
    elif isinstance(x, float):
        d = Decimal(str(x))
    else:
        raise InvalidAmount(f"{field} must be numeric")

    if not d.is_finite():
        raise InvalidAmount(f"{field} must be finite")
    return d


@dataclass(frozen=True)
class CurrencyRate:
    rate: Decimal  # units of base currency per 1 unit of this currency
    minor_units: int = 2


@dataclass(frozen=True)
class RateTable:
    """
    Snapshot of conversion rates into the base currency.

    Built once per call by the rate source and passed into the normalizer;
    nothing here is cached or mutated.
    """

    base: str
    rates: Mapping[str, CurrencyRate]

    def __post_init__(self) -> None:
        base_rate = self.rates.get(self.base)
        if base_rate is None:
            raise InvariantViolation(f"rate table has no entry for base currency {self.base}")
        if base_rate.rate != 1:
            raise InvariantViolation(f"base currency {self.base} rate must be exactly 1, got {base_rate.rate}")
        for code, r in self.rates.items():
            if not r.rate.is_finite() or r.rate <= 0:
                raise InvariantViolation(f"rate for {code} must be positive, got {r.rate}")
            if r.minor_units < 0:
                raise InvariantViolation(f"minor units for {code} must be >= 0")

    @classmethod
    def from_mapping(
        cls,
        rates: Mapping[str, object],
        *,
        base: str,
        minor_units: Optional[Mapping[str, int]] = None,
    ) -> "RateTable":
        """
        Convenience builder: {"MVR": 1, "USD": "15.42"} -> RateTable.
        A missing base entry is filled with rate 1.
        """
        mu = dict(minor_units or {})
        out: dict[str, CurrencyRate] = {}
        for code, raw in rates.items():
            c = str(code).strip().upper()
            out[c] = CurrencyRate(rate=to_decimal(raw, field=f"rate[{c}]"), minor_units=int(mu.get(c, 2)))
        b = base.strip().upper()
        out.setdefault(b, CurrencyRate(rate=Decimal("1"), minor_units=int(mu.get(b, 2))))
        return cls(base=b, rates=out)

    def get(self, code: str) -> CurrencyRate:
        c = (code or "").strip().upper()
        r = self.rates.get(c)
        if r is None:
            raise UnknownCurrency(f"unknown currency: {code!r}", details={"currency": code})
        return r

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.strip().upper() in self.rates

    def codes(self) -> list[str]:
        return sorted(self.rates)


def quantize(amount: Decimal, minor_units: int) -> Decimal:
    return amount.quantize(Decimal(1).scaleb(-int(minor_units)), rounding=ROUND_HALF_UP)


def convert(amount: object, from_code: str, to_code: str, rates: RateTable) -> Decimal:
    """amount * rate[from] / rate[to], rounded half-up to the target's minor units."""
    amt = to_decimal(amount)
    if amt < 0:
        raise InvalidAmount("amount must be >= 0", details={"amount": str(amt)})

    src = rates.get(from_code)
    dst = rates.get(to_code)

    with localcontext() as ctx:
        ctx.prec = WORKING_PRECISION
        raw = amt * src.rate / dst.rate
        return quantize(raw, dst.minor_units)


def to_base(amount: object, currency_code: str, rates: RateTable) -> Decimal:
    return convert(amount, currency_code, rates.base, rates)


def from_base(amount_in_base: object, target_code: str, rates: RateTable) -> Decimal:
    return convert(amount_in_base, rates.base, target_code, rates)
