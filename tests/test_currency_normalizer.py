from __future__ import annotations

from decimal import Decimal
from itertools import permutations

import pytest

from rentledger.domain.currency import RateTable, convert, from_base, to_base
from rentledger.domain.errors import InvalidAmount, InvariantViolation, UnknownCurrency

RATES = RateTable.from_mapping({"MVR": 1, "USD": "15.42", "EUR": "16.85"}, base="MVR")


def test_to_base_and_from_base():
    assert to_base(100, "USD", RATES) == Decimal("1542.00")
    assert from_base(1542, "USD", RATES) == Decimal("100.00")
    assert to_base("250.50", "MVR", RATES) == Decimal("250.50")


def test_cross_rate_goes_through_base():
    # 100 USD = 1542 MVR = 91.51335... EUR
    assert convert(100, "USD", "EUR", RATES) == Decimal("91.51")


def test_rounding_is_half_up_not_bankers():
    rates = RateTable.from_mapping({"MVR": 1, "XTS": 1}, base="MVR")
    assert convert("0.125", "XTS", "MVR", rates) == Decimal("0.13")
    assert convert("0.135", "XTS", "MVR", rates) == Decimal("0.14")


def test_float_input_does_not_leak_binary_error():
    assert to_base(0.1, "USD", RATES) == Decimal("1.54")


def test_target_minor_units_respected():
    rates = RateTable.from_mapping({"MVR": 1, "JPY": "0.1"}, base="MVR", minor_units={"JPY": 0})
    assert from_base(100, "JPY", rates) == Decimal("1000")
    assert from_base("1.05", "JPY", rates) == Decimal("11")


def test_codes_are_case_insensitive():
    assert to_base(1, "usd", RATES) == Decimal("15.42")


def test_unknown_currency():
    with pytest.raises(UnknownCurrency):
        to_base(10, "GBP", RATES)
    with pytest.raises(UnknownCurrency):
        convert(10, "MVR", "GBP", RATES)


@pytest.mark.parametrize("bad", [-1, "-0.01", "NaN", "Infinity", "abc", None])
def test_invalid_amounts(bad):
    with pytest.raises(InvalidAmount):
        to_base(bad, "USD", RATES)


def test_base_rate_must_be_one():
    with pytest.raises(InvariantViolation):
        RateTable.from_mapping({"MVR": 2, "USD": "15.42"}, base="MVR")


def test_rates_must_be_positive():
    with pytest.raises(InvariantViolation):
        RateTable.from_mapping({"MVR": 1, "USD": 0}, base="MVR")


def test_missing_base_is_filled_with_one():
    rates = RateTable.from_mapping({"USD": "15.42"}, base="mvr")
    assert rates.base == "MVR"
    assert to_base(2, "MVR", rates) == Decimal("2.00")


def test_round_trip_within_one_minor_unit():
    amounts = [Decimal("0.01"), Decimal("1"), Decimal("999.99"), Decimal("12345.67")]
    for a, b in permutations(RATES.codes(), 2):
        ra = RATES.get(a).rate
        rb = RATES.get(b).rate
        # one minor unit of the intermediate currency, seen from `a`, plus one of `a`
        tol = Decimal("0.01") * rb / ra + Decimal("0.01")
        for x in amounts:
            back = convert(convert(x, a, b, RATES), b, a, RATES)
            assert abs(back - x) <= tol, (a, b, x, back)
