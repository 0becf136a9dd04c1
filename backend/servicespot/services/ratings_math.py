from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def round_rating(value: float, places: int = 1) -> float:
    """Half-up rounding for display (4.25 -> 4.3, not banker's 4.2)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round_rating(part * 100.0 / whole)
