"""Drift trend over recent reports."""

from __future__ import annotations

from collections.abc import Sequence

from models.drift import DriftTrend

TREND_WINDOW = 5


def analyze_trend(drifts: Sequence[float], window: int = TREND_WINDOW) -> DriftTrend:
    """Least-squares slope of the last ``window`` overall drift values."""
    recent = list(drifts)[-window:]
    n = len(recent)
    if n < 2:
        return DriftTrend()
    sum_x = n * (n - 1) / 2
    sum_y = sum(recent)
    sum_xy = sum(x * y for x, y in enumerate(recent))
    sum_x2 = n * (n - 1) * (2 * n - 1) / 6
    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    return DriftTrend(increasing=slope > 0, rate=abs(round(slope, 1)), slope=slope)
