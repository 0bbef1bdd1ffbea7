"""
Amount Handling Module

Parses and quantizes monetary amounts. Every amount in the ledger is a
Decimal with two fractional digits. NEVER uses float for stored values.
"""

from decimal import (
    Decimal, DecimalException, Inexact, InvalidOperation, ROUND_HALF_UP, getcontext, localcontext
)
from typing import Any

from .exceptions import ValidationError

# High precision for intermediate balance arithmetic
getcontext().prec = 28

PRECISION = 2
CENT = Decimal('0.1') ** PRECISION


def quantize_amount(value: Decimal) -> Decimal:
    """
    Round a Decimal to ledger precision

    Raises:
        decimal.InvalidOperation: If the value has too many digits to be
            held in cents
    """
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def is_ledger_amount(value: Decimal) -> bool:
    """Check that a value is finite and already exact in cents"""
    if not isinstance(value, Decimal) or not value.is_finite():
        return False
    try:
        return quantize_amount(value) == value
    except InvalidOperation:
        return False


def add_amounts(left: Decimal, right: Decimal) -> Decimal:
    """
    Exact sum of two ledger amounts

    Raises:
        decimal.DecimalException: If the sum cannot be held in cents
            without rounding
    """
    with localcontext() as ctx:
        ctx.traps[Inexact] = True
        return quantize_amount(left + right)


def parse_amount(value: Any) -> Decimal:
    """
    Convert caller input into a ledger amount.

    Args:
        value: Decimal, int, float or numeric string

    Returns:
        Decimal quantized to two places

    Raises:
        ValidationError: If the value is not a finite number with at most
            two fractional digits, or has too many digits to hold in cents
    """
    # bool is an int subclass; True is not an amount
    if isinstance(value, bool) or value is None:
        raise ValidationError("Amount must be a number")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"Amount '{value}' is not a number")
    else:
        raise ValidationError("Amount must be a number")

    if not amount.is_finite():
        raise ValidationError("Amount must be a finite number")

    try:
        quantized = quantize_amount(amount)
    except DecimalException:
        raise ValidationError("Amount is too large")

    if quantized != amount:
        raise ValidationError(f"Amount must have at most {PRECISION} decimal places")

    return quantized


def format_amount(value: Decimal) -> str:
    """Format an amount for display and logs"""
    return f"{value:,.{PRECISION}f}"
