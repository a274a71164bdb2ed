"""Numeric coercion and rounding helpers shared by the normalizer and pricing."""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Optional

_CENTS = Decimal("0.01")
_WHOLE = Decimal("1")
# enough digits to quantize any finite float exactly
_EXACT_PREC = 400

# Leading number, optionally signed, optionally with a fraction ("2.5 hrs" -> 2.5)
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def to_number(value) -> Optional[float]:
    """
    Best-effort conversion of an untrusted value to a finite float.

    Accepts ints/floats and strings such as "2.5", " 2.5 hours", "$1,200".
    Returns None for anything else (bools, None, NaN, inf, garbage).
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            num = float(value)
        except OverflowError:
            return None
        return num if math.isfinite(num) else None
    if isinstance(value, Decimal):
        return to_number(float(value))
    if not isinstance(value, str):
        return None

    text = value.strip().replace("$", "").replace(",", "")
    m = _LEADING_NUMBER_RE.match(text)
    if not m:
        return None
    try:
        num = float(m.group(0))
    except ValueError:
        return None
    return num if math.isfinite(num) else None


def round2(value: float) -> float:
    """Round half-up to two decimals on the exact binary value of `value`."""
    with localcontext() as ctx:
        ctx.prec = _EXACT_PREC
        return float(Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP))


def round_whole(value: float) -> int:
    with localcontext() as ctx:
        ctx.prec = _EXACT_PREC
        return int(Decimal(value).quantize(_WHOLE, rounding=ROUND_HALF_UP))
