"""Утилиты форматирования денежных сумм."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

_TWO_PLACES = Decimal("0.01")

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "RUB": "₽",
}


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def round_money(value: Any) -> Decimal:
    """Округлить сумму до копеек (центов) по правилам бухгалтерии."""
    return to_decimal(value).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


def format_currency(value: Any, currency: str = "USD") -> str:
    """Отформатировать сумму с разделителями тысяч: ``$1,234.56``."""

    amount = round_money(value)
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), "")
    sign = "-" if amount < 0 else ""
    formatted = f"{abs(amount):,.2f}"
    if symbol:
        return f"{sign}{symbol}{formatted}"
    return f"{sign}{formatted} {currency.upper()}"
