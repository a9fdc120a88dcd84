"""Trend analytics for dashboard series.

Moving averages, least-squares trend classification and trend-line
coordinates.  Every function accepts plain numbers, ``DataPoint``
instances, or mappings with a ``"value"`` key.

Rounding is half-up (``floor(x * 100 + 0.5) / 100``) so results agree with
the charts rendered in the browser.
"""

import math
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from tasktrail.core.config import STABLE_SLOPE_THRESHOLD
from tasktrail.core.models import TrendDirection, TrendPoint, TrendResult


def _values(series: Sequence[Any]) -> list[float]:
    values = []
    for item in series:
        if isinstance(item, Mapping):
            values.append(item["value"])
        elif hasattr(item, "value"):
            values.append(item.value)
        else:
            values.append(item)
    return values


def _round2(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def _fit(values: list[float]) -> tuple[float, float]:
    """Least-squares slope and intercept of *values* against 0..n-1."""
    n = len(values)
    sum_x = n * (n - 1) / 2
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in enumerate(values))
    sum_xx = sum(x * x for x in range(n))

    denominator = n * sum_xx - sum_x * sum_x
    if denominator == 0:
        # a single point: flat line through it
        return 0.0, sum_y / n
    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


def moving_average(series: Sequence[Any], window_size: int) -> list[Optional[float]]:
    """Trailing moving average of *series*.

    The result has one entry per input value.  Positions without a full
    window of history are ``None``; the rest hold the mean of the trailing
    *window_size* values, rounded to 2 decimals.

    Raises ValueError if *window_size* is not a positive integer.
    """
    if isinstance(window_size, bool) or not isinstance(window_size, int) or window_size <= 0:
        raise ValueError(f"Window size must be a positive integer, got {window_size!r}")

    values = _values(series)
    averages: list[Optional[float]] = []
    for index in range(len(values)):
        if index < window_size - 1:
            averages.append(None)
            continue
        window = values[index - window_size + 1:index + 1]
        averages.append(_round2(sum(window) / window_size))
    return averages


def trend_line(
    series: Sequence[Any],
    stable_threshold: float = STABLE_SLOPE_THRESHOLD,
) -> TrendResult:
    """Classify the least-squares trend of *series*.

    Fewer than two points give a stable, zero trend.  Direction is
    decided on the unrounded slope; the reported slope is rounded to 2
    decimals.  ``percentage_change`` compares the last value to the first
    and is 0 when the first value is 0.
    """
    values = _values(series)
    if len(values) < 2:
        return TrendResult(direction=TrendDirection.STABLE, slope=0.0, percentage_change=0)

    slope, _ = _fit(values)

    first, last = values[0], values[-1]
    if first != 0:
        percentage = math.floor((last - first) / first * 100 + 0.5)
    else:
        percentage = 0

    if abs(slope) < stable_threshold:
        direction = TrendDirection.STABLE
    elif slope > 0:
        direction = TrendDirection.UP
    else:
        direction = TrendDirection.DOWN

    return TrendResult(direction=direction, slope=_round2(slope), percentage_change=percentage)


def trend_line_coordinates(series: Sequence[Any]) -> list[TrendPoint]:
    """Points of the fitted trend line, one per input position."""
    values = _values(series)
    if not values:
        return []
    slope, intercept = _fit(values)
    return [TrendPoint(x=x, y=_round2(slope * x + intercept)) for x in range(len(values))]
