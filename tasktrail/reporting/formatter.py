"""Text formatter for TaskTrail reports.

Renders trends, velocity series, history entries and bulk-operation
outcomes as plain text.
"""

from tasktrail.core.models import (
    BulkOperationResult,
    HistoryEntry,
    TrendDirection,
    TrendResult,
    VelocityReport,
    VelocityWeek,
)

_ARROWS = {
    TrendDirection.UP: "↑",
    TrendDirection.DOWN: "↓",
    TrendDirection.STABLE: "→",
}


class TextFormatter:
    """Formats analytics and history data as human-readable plain text."""

    @staticmethod
    def format_percentage(percentage: int) -> str:
        """Signed percentage, e.g. '+12%', '-5%', '0%'."""
        if percentage > 0:
            return f"+{percentage}%"
        return f"{percentage}%"

    @staticmethod
    def format_trend(trend: TrendResult) -> str:
        """Arrow plus signed percentage, e.g. '↑ +400%'."""
        return f"{_ARROWS[trend.direction]} {TextFormatter.format_percentage(trend.percentage_change)}"

    @staticmethod
    def format_history_entry(entry: HistoryEntry) -> str:
        stamp = entry.changed_at.strftime("%b %d, %Y %H:%M")
        if entry.old_value:
            change = f"{entry.old_value_formatted} -> {entry.new_value_formatted}"
        else:
            change = entry.new_value_formatted
        return f"{stamp}  {entry.field_label}: {change}"

    @staticmethod
    def format_bulk_result(result: BulkOperationResult) -> str:
        lines = [
            f"{result.succeeded_count} succeeded, {result.failed_count} failed"
        ]
        for failure in result.failures:
            lines.append(f"  {failure.target_id}: {failure.reason}")
        return "\n".join(lines)

    @staticmethod
    def _format_week_table(weeks: list[VelocityWeek], averages: list) -> str:
        """Render the weekly table with aligned columns.

        Returns lines like:
          Week      Completed  Avg  Cycle
          ─────────────────────────────────────────
          Jan 6-12          4    -   2.5d
        """
        if not weeks:
            return "  No completed tasks.\n"

        labels = [w.label for w in weeks]
        done = [str(w.completed) for w in weeks]
        avgs = ["-" if a is None else f"{a:g}" for a in averages]
        cycles = [f"{w.avg_cycle_days:.1f}d" for w in weeks]

        week_width = max(max(len(s) for s in labels), len("Week"))
        done_width = max(max(len(s) for s in done), len("Completed"))
        avg_width = max(max(len(s) for s in avgs), len("Avg"))
        cycle_width = max(max(len(s) for s in cycles), len("Cycle"))

        header = (
            f"  {'Week':<{week_width}}  "
            f"{'Completed':>{done_width}}  "
            f"{'Avg':>{avg_width}}  "
            f"{'Cycle':>{cycle_width}}"
        )
        separator = "  " + "─" * (len(header) - 2)
        lines = [header, separator]
        for label, count, avg, cycle in zip(labels, done, avgs, cycles):
            lines.append(
                f"  {label:<{week_width}}  "
                f"{count:>{done_width}}  "
                f"{avg:>{avg_width}}  "
                f"{cycle:>{cycle_width}}"
            )
        return "\n".join(lines) + "\n"

    @staticmethod
    def format_velocity(report: VelocityReport) -> str:
        """Render a velocity report as aligned plain text."""
        parts = [
            f"Velocity: {len(report.weeks)} weeks\n",
            f"\nAverage: {report.average_velocity:g} tasks/week"
            f"  Trend: {TextFormatter.format_trend(report.trend)}"
            f" (slope {report.trend.slope:g})\n\n",
            TextFormatter._format_week_table(report.weeks, report.moving_average),
        ]
        return "".join(parts)
