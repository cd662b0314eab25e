"""Hour-of-year calendar decomposition for a 365-day year."""

from __future__ import annotations

import numpy as np

HOURS_PER_YEAR = 8760

_DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)

# Cumulative hours at the end of each month.
_MONTH_END_HOURS = np.cumsum([d * 24 for d in _DAYS_IN_MONTH])


def hours_in_month(month: int) -> int:
    """Number of hours in *month* (1 -- 12)."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    return _DAYS_IN_MONTH[month - 1] * 24


def month_hour(hour_of_year: int) -> tuple[int, int]:
    """Convert a 0-based hour-of-year index to ``(month, hour)``.

    Both values are 1-based: month in 1 -- 12, hour of day in 1 -- 24.
    """
    if not 0 <= hour_of_year < HOURS_PER_YEAR:
        raise ValueError(
            f"hour_of_year must be in 0..{HOURS_PER_YEAR - 1}, got {hour_of_year}"
        )
    # First month whose cumulative end hour is strictly past the index.
    month = int(np.searchsorted(_MONTH_END_HOURS, hour_of_year, side="right")) + 1
    hour = hour_of_year % 24 + 1
    return month, hour
