"""
Calendar time buckets.

A plan's inclusive [start, end] range is partitioned into contiguous monthly
or yearly [start, end) windows using true calendar arithmetic. The first and
last buckets are clipped to the plan range; representative dates are fixed
per bucket (15th of the month, July 1st of the year) regardless of clipping.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import List, Tuple


class BucketUnit(str, Enum):
    MONTH = "month"
    YEAR = "year"


@dataclass(frozen=True)
class TimeBucket:
    index: int
    start: date  # inclusive
    end: date    # exclusive
    label: str
    representative_date: date

    @property
    def last_day(self) -> date:
        return self.end - timedelta(days=1)

    def as_strings(self) -> Tuple[str, str]:
        """(start, end) as ISO strings, the form Earth Engine date filters take."""
        return self.start.isoformat(), self.end.isoformat()


def _next_month(d: date) -> date:
    if d.month == 12:
        return date(d.year + 1, 1, 1)
    return date(d.year, d.month + 1, 1)


def month_end(year: int, month: int) -> date:
    """Last calendar day of a month (leap years honored)."""
    return date(year, month, calendar.monthrange(year, month)[1])


def split_time_range(start: date, end: date, unit: BucketUnit = BucketUnit.MONTH) -> List[TimeBucket]:
    """
    Partition the inclusive range [start, end] into calendar buckets.

    Raises:
        ValueError: If start is after end
    """
    if start > end:
        raise ValueError(f"start {start} is after end {end}")

    stop = end + timedelta(days=1)
    buckets = []

    if unit == BucketUnit.MONTH:
        cursor = date(start.year, start.month, 1)
        while cursor < stop:
            following = _next_month(cursor)
            buckets.append(TimeBucket(
                index=len(buckets),
                start=max(cursor, start),
                end=min(following, stop),
                label=f"{cursor.year}-{cursor.month:02d}",
                representative_date=date(cursor.year, cursor.month, 15),
            ))
            cursor = following
    else:
        for year in range(start.year, end.year + 1):
            buckets.append(TimeBucket(
                index=len(buckets),
                start=max(date(year, 1, 1), start),
                end=min(date(year + 1, 1, 1), stop),
                label=str(year),
                representative_date=date(year, 7, 1),
            ))

    return buckets


def split_at_midpoint(start: date, end: date) -> Tuple[Tuple[date, date], Tuple[date, date]]:
    """
    Split the inclusive range [start, end] at the elapsed-time midpoint.

    Returns:
        ((before_start, before_end_exclusive), (after_start, after_end_exclusive))
    """
    if start >= end:
        raise ValueError(f"start {start} must be before end {end}")
    midpoint = start + timedelta(days=(end - start).days // 2)
    if midpoint == start:
        midpoint = start + timedelta(days=1)
    return (start, midpoint), (midpoint, end + timedelta(days=1))
