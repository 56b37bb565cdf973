"""Mini README: Display helpers for currency amounts.

Structure:
    * format_currency - render an amount as ``$1,234.50``.
    * parse_currency - parse user input with either decimal separator.

Both helpers work on display-level amounts; conversion to base units is the
job of ``CurrencySystem``.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

_CENT = Decimal("0.01")


def format_currency(amount: Union[int, float, str, Decimal], symbol: str = "$") -> str:
    """Format an amount with two decimals and thousands separators."""

    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        value = Decimal(0)
    if not value.is_finite():
        value = Decimal(0)
    # Tiny positive amounts would otherwise display as zero.
    if Decimal(0) < value < _CENT:
        value = _CENT
    value = value.quantize(_CENT, rounding=ROUND_HALF_UP)
    return f"{symbol}{value:,.2f}"


def parse_currency(value: Union[int, float, str, Decimal, None]) -> Decimal:
    """Parse a formatted amount, guessing the decimal separator.

    The separator that appears last is treated as the decimal separator, so
    both ``"1,234.50"`` and ``"1.234,50"`` parse to ``1234.50``. Anything
    unparseable yields zero.
    """

    if isinstance(value, bool) or value is None:
        return Decimal(0)
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    text = re.sub(r"[^\d.,\-]", "", str(value).strip())
    decimal_separator = "," if text.rfind(",") > text.rfind(".") else "."
    thousands_separator = "." if decimal_separator == "," else ","
    text = text.replace(thousands_separator, "")
    if decimal_separator == ",":
        text = text.replace(",", ".")
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return Decimal(0)
    return parsed if parsed.is_finite() else Decimal(0)
