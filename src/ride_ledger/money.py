"""Money normalization and two-decimal formatting.

Amounts arrive from the backend as decimal strings and from the command line as
free text. Everything is funneled through :func:`to_amount`, which never raises:
anything that is not a finite number counts as zero.
"""

from __future__ import annotations

import math
from decimal import (
    MAX_EMAX,
    MAX_PREC,
    MIN_EMIN,
    ROUND_HALF_UP,
    Context,
    Decimal,
    InvalidOperation,
    localcontext,
)
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Sums and differences of amounts never round, whatever their magnitude
EXACT = Context(prec=MAX_PREC, rounding=ROUND_HALF_UP, Emax=MAX_EMAX, Emin=MIN_EMIN)


def parse_amount(value: Any) -> Decimal | None:
    """Parse a value into a finite Decimal, or None if it is not one."""
    # bool is an int subclass but never a meaningful amount
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text or "_" in text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    return None


def to_amount(value: Any) -> Decimal:
    """Convert an arbitrary value into a finite Decimal, falling back to zero."""
    parsed = parse_amount(value)
    return ZERO if parsed is None else parsed


def fmt2(value: Any) -> str:
    """Format a value as a fixed-point string with exactly two decimals."""
    amount = to_amount(value)
    with localcontext() as ctx:
        # Room for every integer digit plus the two decimals
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        ctx.Emax = MAX_EMAX
        ctx.rounding = ROUND_HALF_UP
        quantized = amount.quantize(CENT)
        if quantized.is_zero():
            quantized = quantized.copy_abs()
        return f"{quantized:.2f}"


def fmt_signed2(value: Any) -> str:
    """Format with an explicit sign: ``+12.50``, ``-3.00``, ``+0.00``."""
    amount = to_amount(value)
    sign = "-" if amount < 0 else "+"
    return f"{sign}{fmt2(amount.copy_abs())}"


def is_positive_amount(value: Any) -> bool:
    """Return True if the value parses to an amount strictly above zero."""
    return to_amount(value) > 0
