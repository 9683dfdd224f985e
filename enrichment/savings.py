"""Savings figures derived from the created and executed valuations."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from constants import SAVINGS_DECIMAL_PLACES
from enrichment.amounts import DECIMAL_CONTEXT, format_decimal, is_present, quantize, to_decimal
from storage.models import ValuationSnapshot


@dataclass(frozen=True, slots=True)
class Savings:
    percentage: str
    amount: str


def compute_savings(
    created: Optional[ValuationSnapshot],
    executed: Optional[ValuationSnapshot],
) -> Optional[Savings]:
    """Compare the USD value received against the USD value committed.

    The percentage is relative to ``amount_in`` (what the user committed), not
    to what was received. Returns None instead of raising when either value is
    missing or unparseable.
    """
    if created is None or executed is None:
        return None

    if not (is_present(created.amount_in) and is_present(executed.received)):
        return None
    amount_in = to_decimal(created.amount_in)
    received = to_decimal(executed.received)

    try:
        delta = DECIMAL_CONTEXT.subtract(received, amount_in)
        ratio = DECIMAL_CONTEXT.divide(delta, amount_in)
        percentage = quantize(DECIMAL_CONTEXT.multiply(ratio, Decimal(100)), SAVINGS_DECIMAL_PLACES)
    except (InvalidOperation, ArithmeticError):
        return None

    return Savings(percentage=str(percentage), amount=format_decimal(delta))
