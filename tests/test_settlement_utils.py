from decimal import Decimal

import pytest

from tronsettle.core.errors import EncodingError
from tronsettle.core.services.settlement.settlement_utils import (
    format_amount,
    from_base_units,
    gen_transaction_wx_id,
    parse_decimal,
    sun_to_trx,
    to_base_units,
)


@pytest.mark.parametrize("amount,decimals,units", [
    ("0.001", 6, 1000),
    ("1", 6, 1_000_000),
    ("123.456789", 6, 123_456_789),
    ("0.000000000000000001", 18, 1),
    ("1157920892373161954235709850086879078532699846656405640394575840079131.29639935", 8,
     115792089237316195423570985008687907853269984665640564039457584007913129639935),
])
def test_amount_round_trips_exactly(amount, decimals, units):
    assert to_base_units(amount, decimals) == units
    assert from_base_units(units, decimals) == Decimal(amount)


def test_extra_fraction_digits_are_rejected_not_rounded():
    with pytest.raises(EncodingError):
        to_base_units("0.0000001", 6)


def test_garbage_amount_rejected():
    with pytest.raises(EncodingError):
        to_base_units("ten", 6)
    with pytest.raises(EncodingError):
        to_base_units("NaN", 6)


def test_format_amount_fixed_places():
    assert format_amount(Decimal("80"), 6) == "80.000000"
    assert format_amount(Decimal("-1.5"), 6) == "-1.500000"
    assert format_amount(Decimal("7"), 0) == "7"


def test_parse_decimal_is_lenient():
    assert parse_decimal("") == Decimal(0)
    assert parse_decimal(None, Decimal("2")) == Decimal("2")
    assert parse_decimal("abc") == Decimal(0)
    assert parse_decimal(" 1.5 ") == Decimal("1.5")


def test_sun_to_trx():
    assert sun_to_trx(100_000) == Decimal("0.1")


def test_wx_id_deterministic():
    a = gen_transaction_wx_id("ab" * 32, "TRX", "")
    b = gen_transaction_wx_id("ab" * 32, "TRX", "")
    c = gen_transaction_wx_id("ab" * 32, "TRX", "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t")
    assert a == b
    assert a != c
    assert len(a) == 64
