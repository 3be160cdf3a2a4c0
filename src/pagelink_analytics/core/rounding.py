"""
Half-up rounding for dashboard percentages.

Python's round() rounds halves to even (round(2.5) == 2); dashboard
percentages round halves up (2.5 -> 3, -2.5 -> -2).
"""
import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round ``value`` to ``ndigits`` decimals, halves towards +infinity."""
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def percent(part: float, whole: float) -> int:
    """Whole-number percentage of ``part`` in ``whole``; 0 when whole is 0."""
    if not whole:
        return 0
    return int(round_half_up(part / whole * 100))


def percent_change(current: float, previous: float) -> float | None:
    """Change from ``previous`` to ``current`` in percent, one decimal.

    None when there is no previous value to compare against.
    """
    if not previous:
        return None
    return round_half_up((current - previous) / previous * 100, 1)
