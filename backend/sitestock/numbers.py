# Overview: Decimal helpers shared by models, services and JSON serialization.

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Lenient numeric parsing for user input.

    - None / "" / whitespace -> None
    - bool -> None (never a quantity)
    - int / float / Decimal -> Decimal
    - str -> trimmed, first decimal comma read as a decimal point
    - anything unparsable or non-finite (NaN, Infinity) -> None
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            number = Decimal(s.replace(",", ".", 1))
        except InvalidOperation:
            return None
    else:
        return None

    if not number.is_finite():
        return None
    return number


def qty_to_json(value: Optional[Decimal]) -> Optional[float]:
    """Quantities leave the API as JSON numbers."""
    if value is None:
        return None
    return float(value)
