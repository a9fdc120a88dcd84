"""Tests for the trend analytics functions."""

import pytest

from tasktrail.core.models import DataPoint, TrendDirection
from tasktrail.reporting.trends import moving_average, trend_line, trend_line_coordinates


# ------------------------------------------------------------------
# moving_average
# ------------------------------------------------------------------

class TestMovingAverage:
    def test_window_of_three(self):
        assert moving_average([1, 2, 3, 4, 5, 6], 3) == [None, None, 2, 3, 4, 5]

    def test_empty(self):
        assert moving_average([], 3) == []

    def test_window_one_is_identity(self):
        assert moving_average([4, 8, 15], 1) == [4, 8, 15]

    def test_window_larger_than_series(self):
        assert moving_average([1, 2], 5) == [None, None]

    def test_rounds_to_two_decimals(self):
        assert moving_average([1, 1, 2], 3) == [None, None, 1.33]

    def test_rounds_half_up(self):
        assert moving_average([0.125, 0.125], 2) == [None, 0.13]

    def test_zero_mean_is_not_none(self):
        assert moving_average([0, 0], 2) == [None, 0]

    def test_accepts_data_points(self):
        series = [DataPoint(value=2), {"value": 4}, 6]
        assert moving_average(series, 2) == [None, 3, 5]

    @pytest.mark.parametrize("window", [0, -1, 2.5, True])
    def test_invalid_window(self, window):
        with pytest.raises(ValueError):
            moving_average([1, 2, 3], window)


# ------------------------------------------------------------------
# trend_line
# ------------------------------------------------------------------

class TestTrendLine:
    def test_rising(self):
        result = trend_line([1, 2, 3, 4, 5])
        assert result.direction is TrendDirection.UP
        assert result.slope == 1
        assert result.percentage_change == 400

    def test_flat(self):
        result = trend_line([5, 5, 5, 5, 5])
        assert result.direction is TrendDirection.STABLE
        assert result.slope == 0
        assert result.percentage_change == 0

    def test_falling(self):
        result = trend_line([10, 8, 6, 4])
        assert result.direction is TrendDirection.DOWN
        assert result.slope == -2
        assert result.percentage_change == -60

    @pytest.mark.parametrize("series", [[], [10]])
    def test_too_short(self, series):
        result = trend_line(series)
        assert result.direction is TrendDirection.STABLE
        assert result.slope == 0
        assert result.percentage_change == 0

    def test_first_value_zero(self):
        result = trend_line([0, 5, 10])
        assert result.direction is TrendDirection.UP
        assert result.percentage_change == 0

    def test_small_slope_is_stable(self):
        # slope 0.05
        result = trend_line([10, 10.05, 10.1])
        assert result.direction is TrendDirection.STABLE
        assert result.slope == 0.05

    def test_custom_threshold(self):
        assert trend_line([1, 2, 3], stable_threshold=2).direction is TrendDirection.STABLE

    def test_accepts_data_points(self):
        result = trend_line([DataPoint(1), DataPoint(3)])
        assert result.slope == 2
        assert result.percentage_change == 200


# ------------------------------------------------------------------
# trend_line_coordinates
# ------------------------------------------------------------------

class TestTrendLineCoordinates:
    def test_empty(self):
        assert trend_line_coordinates([]) == []

    def test_single_point(self):
        points = trend_line_coordinates([7])
        assert [(p.x, p.y) for p in points] == [(0, 7)]

    def test_linear_input_is_reproduced(self):
        points = trend_line_coordinates([2, 4, 6, 8])
        assert [(p.x, p.y) for p in points] == [(0, 2), (1, 4), (2, 6), (3, 8)]

    def test_length_and_endpoints(self):
        series = [3, 5, 6, 9, 11, 12]
        points = trend_line_coordinates(series)
        assert len(points) == len(series)
        assert abs(points[0].y - series[0]) <= 1
        assert abs(points[-1].y - series[-1]) <= 1

    def test_rounded(self):
        points = trend_line_coordinates([1, 2, 2])
        # slope 0.5, intercept 7/6
        assert [p.y for p in points] == [1.17, 1.67, 2.17]
