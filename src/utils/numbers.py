"""Numeric helpers shared by grading and progress aggregation."""

from decimal import ROUND_HALF_UP, Decimal


def percent_half_up(part: int, whole: int) -> int:
    """Return ``part / whole * 100`` rounded to an integer, halves going up.

    Args:
        part: Numerator (points earned, modules completed...)
        whole: Denominator; zero yields 0

    Examples:
        >>> percent_half_up(1, 8)
        13
        >>> percent_half_up(2, 3)
        67
    """
    if whole <= 0:
        return 0
    value = Decimal(part * 100) / Decimal(whole)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
