"""
SatScope Statistics Aggregator
==============================
Descriptive, point-anchored summary statistics for a completed time series.

Trend classification compares the first and last points only; any best-fit
line is a presentation concern.
"""

from typing import Sequence

import numpy as np

from .result import SummaryStats, TimeSeriesPoint

# Symmetric thresholds (percent) for the coarse trend label
TREND_THRESHOLD_PERCENT = 5.0


def classify_trend(first: float, last: float) -> str:
    """
    Label first-vs-last change as increasing / decreasing / stable.

    Percent change is relative to |first| so negative baselines (e.g. °C)
    keep the sign of the actual movement. A zero baseline has no percent.
    """
    if first == 0:
        if last > 0:
            return "increasing"
        if last < 0:
            return "decreasing"
        return "stable"

    change = (last - first) / abs(first) * 100
    if change > TREND_THRESHOLD_PERCENT:
        label = "increasing"
    elif change < -TREND_THRESHOLD_PERCENT:
        label = "decreasing"
    else:
        label = "stable"
    return f"{label} ({change:+.1f}%)"


def compute_statistics(series: Sequence[TimeSeriesPoint]) -> SummaryStats:
    """
    Mean, extrema with their dates, population std-dev and trend.

    Raises:
        ValueError: If the series is empty
    """
    if not series:
        raise ValueError("Cannot compute statistics for an empty series")

    values = np.array([p.value for p in series], dtype=float)
    min_idx = int(np.argmin(values))
    max_idx = int(np.argmax(values))

    return SummaryStats(
        mean=float(np.mean(values)),
        min=float(values[min_idx]),
        min_date=series[min_idx].date,
        max=float(values[max_idx]),
        max_date=series[max_idx].date,
        std_dev=float(np.std(values)),
        trend=classify_trend(float(values[0]), float(values[-1])),
    )
