"""
pt-BR parsing and formatting for the values typed in the fleet forms.

Currency inputs are masked in the frontend: every keystroke is a digit and
the last two digits are cents, so ``"1.234,56"`` and ``"123456"`` both parse
to ``Decimal("1234.56")``.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

Number = Union[int, float, Decimal]

CENTS = Decimal("0.01")


def only_digits(value: str | None) -> str:
    if not value:
        return ""
    return "".join(ch for ch in str(value) if ch.isdigit())


def normalize_plate(value: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", (value or "").upper())


def round_money(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_currency(value: Union[str, Number, None]) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        return round_money(value)
    digits = only_digits(value)
    if not digits:
        return Decimal("0")
    return (Decimal(digits) / 100).quantize(CENTS)


def parse_decimal(value: Union[str, Number, None]) -> Decimal:
    if isinstance(value, str) and "-" in value:
        return -parse_currency(value)
    return parse_currency(value)


def parse_direct_decimal(value: Union[str, Number, None]) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    raw = value.strip()
    if "," in raw:
        raw = raw.replace(".", "").replace(",", ".")
    raw = re.sub(r"[^\d.\-]", "", raw)
    try:
        return Decimal(raw)
    except InvalidOperation:
        return Decimal("0")


def parse_integer(value: Union[str, Number, None]) -> int:
    if value is None:
        return 0
    if isinstance(value, (int, float, Decimal)):
        return int(value)
    digits = only_digits(value)
    return int(digits) if digits else 0


def _group_thousands(integer_part: str) -> str:
    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    return ".".join(groups)


def format_integer(value: Number) -> str:
    number = int(value)
    sign = "-" if number < 0 else ""
    return sign + _group_thousands(str(abs(number)))


def format_currency(value: Number) -> str:
    amount = round_money(value)
    sign = "-" if amount < 0 else ""
    integer_part, _, cents = f"{abs(amount):.2f}".partition(".")
    return f"{sign}{_group_thousands(integer_part)},{cents}"
