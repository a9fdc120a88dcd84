"""Weekly velocity series for the analytics dashboard.

Buckets completed tasks into rolling 7-day windows ending today and
attaches the series' trend, trend line and moving average.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from tasktrail.core.config import STABLE_SLOPE_THRESHOLD
from tasktrail.core.models import VelocityReport, VelocityWeek
from tasktrail.persistence.store import TaskStore
from tasktrail.reporting.trends import moving_average, trend_line, trend_line_coordinates

logger = logging.getLogger(__name__)


class VelocityGenerator:
    """Builds velocity data from the task store."""

    def __init__(
        self,
        store: TaskStore,
        stable_threshold: float = STABLE_SLOPE_THRESHOLD,
    ) -> None:
        self.store = store
        self.stable_threshold = stable_threshold

    def weekly_velocity(self, weeks_back: int, today: Optional[date] = None) -> list[VelocityWeek]:
        """Return *weeks_back* rolling weeks, oldest first.

        The most recent week ends on *today* (default: the current date);
        each week covers 7 days inclusive.
        """
        today = today or date.today()
        weeks: list[VelocityWeek] = []
        for offset in range(weeks_back):
            week_end = today - timedelta(days=offset * 7)
            week_start = week_end - timedelta(days=6)
            completed = self.store.get_completed_tasks(
                datetime.combine(week_start, time.min),
                datetime.combine(week_end + timedelta(days=1), time.min),
            )
            avg_cycle = 0.0
            if completed:
                total_days = sum(
                    (t.completed_at - t.created_at).total_seconds() / 86400
                    for t in completed
                    if t.completed_at is not None
                )
                avg_cycle = total_days / len(completed)
            weeks.insert(
                0,
                VelocityWeek(
                    label=f"{week_start.strftime('%b')} {week_start.day}-{week_end.day}",
                    week_start=week_start,
                    week_end=week_end,
                    completed=len(completed),
                    avg_cycle_days=avg_cycle,
                ),
            )
        return weeks

    def velocity_report(
        self,
        weeks_back: int,
        window: int = 3,
        today: Optional[date] = None,
    ) -> VelocityReport:
        """Velocity series plus trend classification and smoothing."""
        weeks = self.weekly_velocity(weeks_back, today)
        counts = [w.completed for w in weeks]
        average = sum(counts) / len(counts) if counts else 0.0
        report = VelocityReport(
            weeks=weeks,
            trend=trend_line(counts, self.stable_threshold),
            trend_points=trend_line_coordinates(counts),
            moving_average=moving_average(counts, window),
            average_velocity=round(average, 1),
        )
        logger.debug(
            "Velocity over %d weeks: avg %.1f, trend %s",
            weeks_back, report.average_velocity, report.trend.direction.value,
        )
        return report
