"""
Statistical helpers shared by the scoring services.

Empty inputs report 0 so KPI medians over an empty view stay numeric; callers
that need to tell "no data" apart use median_or_none.
"""

from typing import List, Optional, Sequence


def mean(values: Sequence[float]) -> float:
    """
    Arithmetic mean of the values.

    Args:
        values: Numeric values

    Returns:
        Mean, or 0.0 for an empty sequence
    """
    if not values:
        return 0.0
    return sum(values) / len(values)


def median(values: Sequence[float]) -> float:
    """
    Median of the values; even-length inputs average the two middle values.

    Args:
        values: Numeric values

    Returns:
        Median, or 0.0 for an empty sequence
    """
    if not values:
        return 0.0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return float(ordered[mid])
    return (ordered[mid - 1] + ordered[mid]) / 2


def median_or_none(values: Sequence[Optional[float]]) -> Optional[float]:
    """Median of the non-null values, or None when there are none."""
    present: List[float] = [value for value in values if value is not None]
    if not present:
        return None
    return median(present)


__all__ = [
    'mean',
    'median',
    'median_or_none',
]
