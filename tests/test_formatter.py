"""Unit tests for TextFormatter."""

from datetime import date, datetime

import pytest

from tasktrail.core.models import (
    BulkFailure,
    BulkOperationResult,
    HistoryEntry,
    TrendDirection,
    TrendPoint,
    TrendResult,
    VelocityReport,
    VelocityWeek,
)
from tasktrail.reporting.formatter import TextFormatter


class TestFormatPercentage:
    def test_positive(self):
        assert TextFormatter.format_percentage(12) == "+12%"

    def test_negative(self):
        assert TextFormatter.format_percentage(-5) == "-5%"

    def test_zero(self):
        assert TextFormatter.format_percentage(0) == "0%"


class TestFormatTrend:
    def test_up(self):
        trend = TrendResult(TrendDirection.UP, 1.0, 400)
        assert TextFormatter.format_trend(trend) == "↑ +400%"

    def test_stable(self):
        trend = TrendResult(TrendDirection.STABLE, 0.0, 0)
        assert TextFormatter.format_trend(trend) == "→ 0%"


def _entry(old: str, old_fmt: str) -> HistoryEntry:
    return HistoryEntry(
        id=1, task_id="t1", field="status", field_label="Status",
        old_value=old, new_value="done", old_value_formatted=old_fmt,
        new_value_formatted="Done", changed_at=datetime(2025, 1, 15, 9, 5),
        change_type="status_changed",
    )


class TestFormatHistoryEntry:
    def test_with_old_value(self):
        line = TextFormatter.format_history_entry(_entry("todo", "To Do"))
        assert line == "Jan 15, 2025 09:05  Status: To Do -> Done"

    def test_without_old_value(self):
        line = TextFormatter.format_history_entry(_entry("", "(empty)"))
        assert line.endswith("Status: Done")


class TestFormatBulkResult:
    def test_lists_failures(self):
        result = BulkOperationResult(
            overall_success=False, succeeded_count=2, failed_count=1,
            failures=[BulkFailure("t9", "Task not found")],
        )
        text = TextFormatter.format_bulk_result(result)
        assert text.splitlines() == ["2 succeeded, 1 failed", "  t9: Task not found"]


class TestFormatVelocity:
    def _report(self) -> VelocityReport:
        weeks = [
            VelocityWeek("Mar 1-7", date(2025, 3, 1), date(2025, 3, 7), 2, 1.5),
            VelocityWeek("Mar 8-14", date(2025, 3, 8), date(2025, 3, 14), 4, 2.0),
        ]
        return VelocityReport(
            weeks=weeks,
            trend=TrendResult(TrendDirection.UP, 2.0, 100),
            trend_points=[TrendPoint(0, 2), TrendPoint(1, 4)],
            moving_average=[None, 3.0],
            average_velocity=3.0,
        )

    def test_contains_rows_and_trend(self):
        text = TextFormatter.format_velocity(self._report())
        assert "Velocity: 2 weeks" in text
        assert "Average: 3 tasks/week" in text
        assert "↑ +100%" in text
        assert "Mar 8-14" in text
        assert "2.0d" in text

    def test_columns_aligned(self):
        text = TextFormatter.format_velocity(self._report())
        table = [l for l in text.splitlines() if l.startswith("  ") and "─" not in l]
        assert len({len(l) for l in table}) == 1

    def test_empty(self):
        text = TextFormatter.format_velocity(VelocityReport())
        assert "No completed tasks." in text
