"""
Broker Normalizer - Decimal String Algebra.

============================================================
PURPOSE
============================================================
Exact arithmetic and comparison over numeric strings.

Broker prices and units arrive as fixed-decimal strings whose
binary float representation is lossy. Every amount, price and
volume in the canonical model goes through these helpers.

- "1.0" and "1" compare equal
- Results are rendered without exponent notation
- Malformed input raises MalformedNumber (no recovery)

============================================================
"""

import re
from decimal import (
    MAX_EMAX,
    MIN_EMIN,
    Context,
    Decimal,
    Inexact,
    InvalidOperation,
    Overflow,
    ROUND_DOWN,
    ROUND_HALF_EVEN,
)
from typing import Any, Optional

from .errors import MalformedNumber


ZERO = Decimal("0")

_NUMERIC = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def _context(prec: int, exact: bool = True) -> Context:
    """Decimal context of `prec` digits; exact contexts trap any rounding."""
    traps = [InvalidOperation, Overflow]
    if exact:
        traps.append(Inexact)
    return Context(
        prec=max(prec, 1),
        rounding=ROUND_HALF_EVEN,
        Emax=MAX_EMAX,
        Emin=MIN_EMIN,
        traps=traps,
    )


def _exact_context(*numbers: Decimal) -> Context:
    # Digits from the highest place (plus one for a carry) down to the lowest exponent.
    top = max(number.adjusted() for number in numbers) + 2
    bottom = min(number.as_tuple().exponent for number in numbers)
    return _context(top - bottom)


def to_decimal(value: Any) -> Decimal:
    """
    Parse a numeric string into a Decimal.

    Args:
        value: Numeric string (ints are accepted too)

    Returns:
        Finite Decimal

    Raises:
        MalformedNumber: If value is not a finite decimal number
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, Decimal)):
        raise MalformedNumber(value)
    if isinstance(value, str) and not _NUMERIC.match(value.strip()):
        raise MalformedNumber(value)
    try:
        result = Decimal(value.strip()) if isinstance(value, str) else Decimal(value)
    except InvalidOperation as e:
        raise MalformedNumber(value) from e
    if not result.is_finite():
        raise MalformedNumber(value)
    return result


def render(value: Decimal) -> str:
    """Render a Decimal as a plain numeric string."""
    if value.is_zero():
        value = abs(value)
    return format(value, "f")


# ============================================================
# ARITHMETIC
# ============================================================

def string_add(a: str, b: str) -> str:
    """Exact a + b."""
    x, y = to_decimal(a), to_decimal(b)
    return render(_exact_context(x, y).add(x, y))


def string_sub(a: str, b: str) -> str:
    """Exact a - b."""
    x, y = to_decimal(a), to_decimal(b)
    return render(_exact_context(x, y).subtract(x, y))


def string_neg(a: str) -> str:
    """Exact -a."""
    x = to_decimal(a)
    return render(_exact_context(x).minus(x))


def string_abs(a: str) -> str:
    """Exact |a|."""
    x = to_decimal(a)
    return render(_exact_context(x).abs(x))


# ============================================================
# COMPARISON
# ============================================================

def string_gt(a: str, b: str) -> bool:
    return to_decimal(a) > to_decimal(b)


def string_lt(a: str, b: str) -> bool:
    return to_decimal(a) < to_decimal(b)


def string_eq(a: str, b: str) -> bool:
    return to_decimal(a) == to_decimal(b)


def decimal_key(a: str) -> Decimal:
    """Sort key giving exact numeric ordering of numeric strings."""
    return to_decimal(a)


# ============================================================
# PRECISION
# ============================================================

def to_precision(value: Any, digits: Optional[int], truncate: bool = False) -> str:
    """
    Quantize a number to a count of decimal places.

    Args:
        value: Numeric string or Decimal
        digits: Decimal places; None leaves the value untouched
        truncate: Round toward zero instead of half-even

    Returns:
        Numeric string
    """
    number = to_decimal(value if isinstance(value, (str, int, Decimal)) else str(value))
    if digits is None:
        return render(number)
    exponent = Decimal(1).scaleb(-digits)
    rounding = ROUND_DOWN if truncate else ROUND_HALF_EVEN
    context = _context(number.adjusted() + digits + 2, exact=False)
    return render(number.quantize(exponent, rounding=rounding, context=context))
