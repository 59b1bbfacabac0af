"""Domain number parsing — pure functions, zero external dependencies.

French reports write amounts as ``1 234,56``; exports from other tools use
``1,234.56``. Every amount in the project goes through ``parse_number`` and is
kept at two decimals (half-up) from then on.

Only stdlib imports allowed.
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

NAN = float("nan")

_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)")
_CENT = Decimal("1")


def is_number(value) -> bool:
    """True for a finite int/float that is not a bool."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def to_cents(value: float) -> int:
    """Convert an amount to integer cents, rounding half away from zero."""
    try:
        return int((Decimal(str(value)) * 100).quantize(_CENT, rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValueError(f"Montant non numérique: {value!r}") from None


def round_to_two(value: float) -> float:
    """Round to two decimals; NaN and infinities pass through unchanged."""
    if not math.isfinite(value):
        return value
    return to_cents(value) / 100


def safe_add(a: float, b: float) -> float:
    """Add two amounts, treating NaN/None as zero, rounded to the cent."""
    left = a if is_number(a) else 0.0
    right = b if is_number(b) else 0.0
    return (to_cents(left) + to_cents(right)) / 100


def _normalize_separators(raw: str) -> str:
    last_comma = raw.rfind(",")
    last_dot = raw.rfind(".")
    if last_comma == -1 and last_dot == -1:
        return raw
    decimal_at = max(last_comma, last_dot)
    head = raw[:decimal_at].replace(",", "").replace(".", "")
    tail = raw[decimal_at + 1:].replace(",", "").replace(".", "")
    return f"{head}.{tail}"


def parse_number(value) -> float:
    """Parse a French or English formatted amount into a 2-decimal float.

    Returns NaN when no leading number can be read. Callers check with
    ``math.isnan`` before using the result.
    """
    if isinstance(value, bool) or value is None:
        return NAN
    if isinstance(value, (int, float)):
        return round_to_two(float(value))
    if not isinstance(value, str):
        return NAN

    compact = re.sub(r"\s+", "", value)
    if not compact:
        return NAN

    match = _LEADING_NUMBER.match(_normalize_separators(compact))
    if not match:
        return NAN
    try:
        return round_to_two(float(match.group(0)))
    except ValueError:
        return NAN


def format_number(value: float) -> str:
    """Compact rendering for labels: ``10`` rather than ``10.0``."""
    return f"{round_to_two(float(value)):.2f}".rstrip("0").rstrip(".")
