"""Report exporter for TaskTrail.

Generates Word (.docx) analytics reports from velocity data using python-docx.
"""

import logging
import os
from datetime import date

from tasktrail.core.models import VelocityReport
from tasktrail.reporting.formatter import TextFormatter

logger = logging.getLogger(__name__)


class ReportExporter:
    """Exports velocity analytics to a formatted Word document (.docx)."""

    def export_velocity(
        self, report: VelocityReport, user_name: str, output_path: str
    ) -> str:
        """Generate a .docx file from a velocity report.

        Args:
            report: The velocity report to export.
            user_name: The user's configured display name.
            output_path: File path for the generated .docx file.

        Returns:
            The path to the generated file.

        Raises:
            ImportError: If python-docx is not installed.
        """
        try:
            from docx import Document
        except ImportError:
            raise ImportError(
                "python-docx is required for report export. "
                "Install it with: pip install python-docx"
            )

        parent_dir = os.path.dirname(output_path)
        if parent_dir:
            os.makedirs(parent_dir, exist_ok=True)

        doc = Document()

        self._add_title_page(doc, report, user_name)

        doc.add_heading("Trend", level=1)
        doc.add_paragraph(
            f"Average velocity: {report.average_velocity:g} tasks per week"
        )
        doc.add_paragraph(
            f"Direction: {report.trend.direction.value} "
            f"({TextFormatter.format_percentage(report.trend.percentage_change)}, "
            f"slope {report.trend.slope:g})"
        )

        doc.add_heading("Weekly Breakdown", level=1)
        if not report.weeks:
            doc.add_paragraph("No completed tasks.")
        else:
            self._add_week_table(doc, report)

        doc.save(output_path)
        logger.info("Velocity report written to %s", output_path)
        return output_path

    def _add_title_page(self, doc, report: VelocityReport, user_name: str) -> None:
        """Add a title page with report title, date range, and user name."""
        from docx.shared import Pt
        from docx.enum.text import WD_ALIGN_PARAGRAPH

        title_para = doc.add_paragraph()
        title_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = title_para.add_run("TaskTrail Velocity Report")
        run.bold = True
        run.font.size = Pt(24)

        if report.weeks:
            start_str = report.weeks[0].week_start.strftime("%B %d, %Y")
            end_str = report.weeks[-1].week_end.strftime("%B %d, %Y")
        else:
            start_str = end_str = date.today().strftime("%B %d, %Y")
        date_para = doc.add_paragraph()
        date_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
        run = date_para.add_run(f"{start_str} - {end_str}")
        run.font.size = Pt(14)

        if user_name:
            name_para = doc.add_paragraph()
            name_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
            run = name_para.add_run(f"Prepared for: {user_name}")
            run.font.size = Pt(12)

        doc.add_page_break()

    def _add_week_table(self, doc, report: VelocityReport) -> None:
        """Add the week-by-week table: completed, moving average, trend, cycle time."""
        table = doc.add_table(rows=1 + len(report.weeks), cols=5)
        table.style = "Light Grid Accent 1"

        header_cells = table.rows[0].cells
        for cell, text in zip(header_cells, ("Week", "Completed", "Moving Avg", "Trend", "Cycle (days)")):
            cell.text = text

        for i, week in enumerate(report.weeks, start=1):
            avg = report.moving_average[i - 1] if i - 1 < len(report.moving_average) else None
            point = report.trend_points[i - 1] if i - 1 < len(report.trend_points) else None
            row_cells = table.rows[i].cells
            row_cells[0].text = week.label
            row_cells[1].text = str(week.completed)
            row_cells[2].text = "-" if avg is None else f"{avg:g}"
            row_cells[3].text = "-" if point is None else f"{point.y:g}"
            row_cells[4].text = f"{week.avg_cycle_days:.1f}"

        for cell in table.rows[0].cells:
            for paragraph in cell.paragraphs:
                for run in paragraph.runs:
                    run.bold = True

        doc.add_paragraph()  # spacing after table
