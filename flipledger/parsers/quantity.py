"""Quantity and GP shorthand parsing.

Screenshots and user input abbreviate large numbers: ``12.5K`` is 12,500,
``3M`` is 3,000,000 and ``4.3B`` is 4,300,000,000. Separators (``1,234``)
and stray whitespace are tolerated.
"""

from __future__ import annotations

import re
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

_MULTIPLIERS = {
    "": 1,
    "k": 1_000,
    "m": 1_000_000,
    "b": 1_000_000_000,
}

_SHORTHAND_RE = re.compile(r"^(\d+(?:\.\d*)?|\.\d+)([kmb])?$", re.IGNORECASE)


def _to_decimal(raw: Any) -> Optional[Decimal]:
    """Parse ``raw`` into an exact Decimal, or None if it isn't a quantity."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            return None
        return value if value.is_finite() else None

    cleaned = re.sub(r"[,\s]", "", str(raw))
    match = _SHORTHAND_RE.match(cleaned)
    if not match:
        return None
    mantissa, suffix = match.groups()
    return Decimal(mantissa) * _MULTIPLIERS[(suffix or "").lower()]


def parse_quantity(raw: Any) -> int:
    """Parse a stack size such as ``"12.5K"`` into an integer of at least 1.

    Malformed input never raises; it falls back to a quantity of 1 so the
    surrounding item can still be imported.
    """
    value = _to_decimal(raw)
    if value is None:
        return 1
    quantity = int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(quantity, 1)


def parse_gp(raw: Any) -> Optional[int]:
    """Parse a GP amount (``"4.3b"``, ``"500k"``, ``"1,250"``), floored.

    Unlike ``parse_quantity`` this returns None for unparseable input since
    a price has no safe default.
    """
    value = _to_decimal(raw)
    if value is None or value < 0:
        return None
    return int(value.quantize(Decimal(1), rounding=ROUND_FLOOR))


def format_gp(value: float) -> str:
    """Short display form: ``4300000000 -> "4.3B"``, ``500000 -> "500K"``."""
    magnitude = abs(value)
    if magnitude >= 1_000_000_000:
        return f"{value / 1_000_000_000:.1f}B"
    if magnitude >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if magnitude >= 1_000:
        return f"{value / 1_000:.1f}K"
    return f"{int(value):,}"
