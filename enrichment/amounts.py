"""Decimal helpers shared by valuation, savings and reporting."""
from __future__ import annotations

from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from constants import DECIMAL_PRECISION

DECIMAL_CONTEXT = Context(prec=DECIMAL_PRECISION, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a stored amount, returning None for empty or malformed values."""
    if value is None or value == "":
        return None
    try:
        parsed = DECIMAL_CONTEXT.create_decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def is_present(value: Any) -> bool:
    """A valuation is present only when it parses to a non-zero number.

    Zero and empty both mean "not resolved yet", never a real valuation of zero.
    """
    parsed = to_decimal(value)
    return parsed is not None and parsed != 0


def format_decimal(value: Decimal) -> str:
    """Render without exponent notation or trailing zeros."""
    if value == 0:
        return "0"
    return format(value.normalize(DECIMAL_CONTEXT), "f")


def from_base_units(raw_amount: str, decimals: int) -> Decimal:
    """Scale a raw on-chain integer amount down by the token's decimals."""
    return Decimal(int(raw_amount)).scaleb(-decimals, DECIMAL_CONTEXT)


def quantize(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP, context=DECIMAL_CONTEXT)


def is_integer_string(value: Any, *, allow_zero: bool) -> bool:
    if not isinstance(value, str) or not (value.isascii() and value.isdigit()):
        return False
    return allow_zero or int(value) > 0
