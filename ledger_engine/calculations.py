"""
Ledger Engine - Calculations.

============================================================
PURPOSE
============================================================
Decimal arithmetic for ledger operations.

RULES:
- Amounts are Decimal end to end; float input is rejected
- Account-currency amounts carry 2 decimal places
- Quantities, prices and wallet amounts carry 8
- Rounding is ROUND_HALF_UP, applied once, at the point a
  value is written to an account-currency column

============================================================
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError
from .types import TradeDirection


CASH_PLACES = 2
ASSET_PLACES = 8

CASH_QUANTUM = Decimal("0.01")
ASSET_QUANTUM = Decimal("0.00000001")


# ============================================================
# CONVERSION
# ============================================================

def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Convert an input value to Decimal without passing through float.

    Accepts Decimal, int and decimal strings.

    Raises:
        ValidationError: float, bool, non-finite or unparsable input
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(
            f"{field} must be an exact decimal, got {type(value).__name__}",
            field=field,
            code="VAL_NOT_DECIMAL",
        )
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} is not a decimal: {value!r}", field=field, code="VAL_NOT_DECIMAL")
    else:
        raise ValidationError(f"{field} is not a decimal: {value!r}", field=field, code="VAL_NOT_DECIMAL")

    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", field=field, code="VAL_NOT_DECIMAL")
    return result


def quantize_cash(value: Decimal) -> Decimal:
    """Round to account-currency precision (2 dp, half up)."""
    return value.quantize(CASH_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_asset(value: Decimal) -> Decimal:
    """Round to asset precision (8 dp, half up)."""
    return value.quantize(ASSET_QUANTUM, rounding=ROUND_HALF_UP)


# ============================================================
# INPUT CHECKS
# ============================================================

def require_scale(value: Decimal, places: int, field: str) -> Decimal:
    """
    Reject values with more fractional digits than the column holds.

    Silently rounding an input would change the caller's amount.
    """
    exponent = value.normalize().as_tuple().exponent
    if isinstance(exponent, int) and -exponent > places:
        raise ValidationError(
            f"{field} has more than {places} decimal places: {value}",
            field=field,
            code="VAL_PRECISION",
        )
    return value


def require_positive(value: Any, field: str, places: int = ASSET_PLACES) -> Decimal:
    """
    Convert and check a strictly positive amount.

    Raises:
        ValidationError: not an exact decimal, not > 0, or too precise
    """
    amount = to_decimal(value, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than 0, got {amount}", field=field, code="VAL_NOT_POSITIVE")
    return require_scale(amount, places, field)


# ============================================================
# LEDGER ARITHMETIC
# ============================================================

def trade_notional(quantity: Decimal, price: Decimal) -> Decimal:
    """Cash value of a position, rounded to account precision."""
    return quantize_cash(quantity * price)


def realized_profit_loss(
    direction: TradeDirection,
    quantity: Decimal,
    entry_price: Decimal,
    exit_price: Decimal,
) -> Decimal:
    """
    Profit or loss realized by closing a position.

    buy:  (exit - entry) * quantity
    sell: (entry - exit) * quantity
    """
    if direction == TradeDirection.BUY:
        raw = (exit_price - entry_price) * quantity
    else:
        raw = (entry_price - exit_price) * quantity
    return quantize_cash(raw)


__all__ = [
    "CASH_PLACES",
    "ASSET_PLACES",
    "to_decimal",
    "quantize_cash",
    "quantize_asset",
    "require_scale",
    "require_positive",
    "trade_notional",
    "realized_profit_loss",
]
