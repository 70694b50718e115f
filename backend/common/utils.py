"""
Common utility functions for the ExamForge backend.

Numeric helpers shared by scoring, analytics and reporting, plus the clock
used by the attempt lifecycle.
"""

import datetime
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

Number = Union[int, float]


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the convention for every stored datetime."""
    return datetime.datetime.utcnow()


def round_half_up(value: Number) -> int:
    """
    Round to the nearest integer with halves going up.

    Python's ``round`` uses banker's rounding (``round(2.5) == 2``); scores
    and accuracies are always rounded half-up instead.

    Args:
        value: Number to round

    Returns:
        Rounded integer
    """
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percentage(part: Number, whole: Number) -> int:
    """Integer percentage of ``part`` in ``whole``; 0 when ``whole`` is 0."""
    if whole == 0:
        return 0
    return round_half_up(part / whole * 100)


def rounded_mean(values: Iterable[Number]) -> int:
    """Rounded arithmetic mean; an empty input averages to 0."""
    values = list(values)
    if not values:
        return 0
    return round_half_up(math.fsum(values) / len(values))


def format_duration(seconds: float) -> str:
    """
    Format a duration in seconds to a human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string (e.g., "2h 30m", "45s")
    """
    if seconds < 60:
        return f"{int(seconds)}s"
    elif seconds < 3600:
        minutes = int(seconds / 60)
        seconds = int(seconds % 60)
        return f"{minutes}m {seconds}s"
    else:
        hours = int(seconds / 3600)
        minutes = int((seconds % 3600) / 60)
        return f"{hours}h {minutes}m"
