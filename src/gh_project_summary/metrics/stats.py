"""Small numeric helpers shared by the metric calculators.

None of them ever return NaN or infinity: empty inputs produce None
(means, medians) or RATIO_SENTINEL (ratios).
"""

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from gh_project_summary.metrics.constants import (
    DAY_PRECISION,
    RATE_PRECISION,
    RATIO_SENTINEL,
    RECENT_WINDOW_DAYS,
)

SECONDS_PER_DAY = 86400.0


def ratio(numerator: float, denominator: float, precision: int = RATE_PRECISION) -> float:
    """Divide, returning RATIO_SENTINEL for a zero denominator."""
    if denominator == 0:
        return RATIO_SENTINEL
    return round(numerator / denominator, precision)


def mean(values: Sequence[float]) -> float | None:
    """Arithmetic mean, or None for no values."""
    if not values:
        return None
    return sum(values) / len(values)


def median(values: Sequence[float]) -> float | None:
    """Median by the sorted even/odd midpoint rule, or None for no values."""
    if not values:
        return None
    sorted_values = sorted(values)
    mid = len(sorted_values) // 2
    if len(sorted_values) % 2 == 0:
        return (sorted_values[mid - 1] + sorted_values[mid]) / 2
    return sorted_values[mid]


def round_days(value: float | None) -> float | None:
    """Round a day count, keeping None."""
    return None if value is None else round(value, DAY_PRECISION)


def days_between(start: datetime | None, end: datetime | None) -> float | None:
    """Elapsed days from start to end, or None if either is missing."""
    if start is None or end is None:
        return None
    return (end - start).total_seconds() / SECONDS_PER_DAY


def week_key(dt: datetime) -> str:
    """ISO week bucket key like ``2024-W01``."""
    year, week, _ = dt.isocalendar()
    return f"{year}-W{week:02d}"


def month_key(dt: datetime) -> str:
    """Month bucket key like ``2024-01``."""
    return f"{dt.year}-{dt.month:02d}"


class Windows:
    """The recent and previous activity windows around a reference time.

    Both windows are half-open: ``(start, end]``.
    """

    def __init__(self, reference_time: datetime, days: int = RECENT_WINDOW_DAYS) -> None:
        span = timedelta(days=days)
        self.reference_time = reference_time
        self.recent_start = reference_time - span
        self.previous_start = reference_time - 2 * span

    def is_recent(self, ts: datetime | None) -> bool:
        """True if ts falls in the recent window."""
        return ts is not None and self.recent_start < ts <= self.reference_time

    def is_previous(self, ts: datetime | None) -> bool:
        """True if ts falls in the window right before the recent one."""
        return ts is not None and self.previous_start < ts <= self.recent_start

    def count_recent(self, timestamps: Iterable[datetime | None]) -> int:
        """Number of timestamps in the recent window."""
        return sum(1 for ts in timestamps if self.is_recent(ts))

    def count_previous(self, timestamps: Iterable[datetime | None]) -> int:
        """Number of timestamps in the previous window."""
        return sum(1 for ts in timestamps if self.is_previous(ts))
