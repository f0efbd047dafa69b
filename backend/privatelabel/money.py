# Overview: Decimal currency helpers; every stored amount is quantized to cents.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from .validation import ValidationError

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")

# Maximum amount: $9,999,999,999.99 fits Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")


def round2(value) -> Decimal:
    """Round half-up to two decimal places."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value, field: str, *, allow_none: bool = False) -> Optional[Decimal]:
    """
    Parse a client-supplied number into a Decimal.

    Floats are converted through str() so 0.1 stays 0.1. Booleans, NaN and
    infinities are rejected.
    """
    if value is None or value == "":
        if allow_none:
            return None
        raise ValidationError(f"{field} is required", {"field": field})
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", {"field": field})
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", {"field": field})
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", {"field": field})
    if abs(result) > MAX_AMOUNT:
        raise ValidationError(f"{field} is too large", {"field": field})
    return result


def money_str(value: Optional[Decimal]) -> Optional[str]:
    """JSON representation of a stored amount ("90.00")."""
    if value is None:
        return None
    return str(round2(value))
