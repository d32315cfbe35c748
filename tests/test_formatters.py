from decimal import Decimal

import pytest

from fleet.core.formatters import (
    format_currency,
    format_integer,
    normalize_plate,
    parse_currency,
    parse_decimal,
    parse_direct_decimal,
    parse_integer,
    round_money,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1.234,56", Decimal("1234.56")),
        ("R$ 50.000,00", Decimal("50000.00")),
        ("123456", Decimal("1234.56")),
        ("", Decimal("0")),
        (None, Decimal("0")),
        (99.999, Decimal("100.00")),
    ],
)
def test_parse_currency(raw, expected):
    assert parse_currency(raw) == expected


def test_parse_decimal_keeps_sign():
    assert parse_decimal("-1.234,56") == Decimal("-1234.56")
    assert parse_decimal("10,00") == Decimal("10.00")


def test_parse_direct_decimal():
    assert parse_direct_decimal("500,5") == Decimal("500.5")
    assert parse_direct_decimal("1.500,25") == Decimal("1500.25")
    assert parse_direct_decimal("6.49") == Decimal("6.49")
    assert parse_direct_decimal("abc") == Decimal("0")
    assert parse_direct_decimal("") == Decimal("0")


def test_parse_integer():
    assert parse_integer("12.345") == 12345
    assert parse_integer("") == 0
    assert parse_integer(1200) == 1200


def test_format_helpers():
    assert format_integer(12345) == "12.345"
    assert format_integer(999) == "999"
    assert format_currency(Decimal("1234.56")) == "1.234,56"
    assert format_currency(1000000) == "1.000.000,00"
    assert format_currency(-5.5) == "-5,50"


def test_round_money_half_up():
    assert round_money(Decimal("2.675")) == Decimal("2.68")
    assert round_money(0.125) == Decimal("0.13")


def test_normalize_plate():
    assert normalize_plate("abc-1d23") == "ABC1D23"
    assert normalize_plate(" xyz 9876 ") == "XYZ9876"
