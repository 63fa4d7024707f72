"""
Numeric conventions:
- Money is Decimal with 2 places (half-up), stored as NUMERIC(14, 2).
- Stock quantities are Decimal with 3 places so kilos and litres fit, stored as NUMERIC(14, 3).
- SQLite hands NUMERIC back as float; every value read from the store goes through to_decimal().
- JSON responses carry plain numbers (int when whole, float otherwise); Decimal never leaks into a response body.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce int/float/str/Decimal to Decimal. None becomes 0. Booleans and NaN are rejected."""
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        # str() keeps the shortest repr, so 0.1 stays 0.1 instead of 0.1000000000000000055...
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"{value!r} is not a number")
    if not result.is_finite():
        raise ValueError(f"{value!r} is not a finite number")
    return result


def money(value: Any) -> Decimal:
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def quantity(value: Any) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def to_number(value: Optional[Decimal]) -> Optional[float | int]:
    """JSON-friendly rendering: whole numbers as int, everything else as float."""
    if value is None:
        return None
    d = to_decimal(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d)
