"""Percentage helpers.

Python's ``round`` rounds half to even (``round(0.5) == 0``); completion and
score percentages round half away from zero so that 1/2 reads as 50 and
2.5 as 3.
"""

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float | Decimal, places: int = 0) -> Decimal:
    """Round ``value`` half-up to ``places`` decimals."""
    quantum = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def percent_of(part: float | int, whole: float | int) -> Decimal:
    """Exact ``100 * part / whole`` as a Decimal (0 when ``whole`` is 0)."""
    if not whole:
        return Decimal(0)
    return Decimal(str(part)) * 100 / Decimal(str(whole))
