"""TaskTrail application entry point.

Supports three modes:
  - Server mode (default): serves the JSON API in the foreground
  - Velocity mode: prints the weekly velocity report to stdout
  - Export mode: writes the velocity report to a Word document

Usage:
    python -m tasktrail.main                       # serve the API
    python -m tasktrail.main --velocity            # print velocity report
    python -m tasktrail.main --export report.docx  # export velocity report
"""

import argparse
import logging
import os

from tasktrail.core.config import get_default_config_path, get_section, load_config
from tasktrail.persistence.store import TaskStore
from tasktrail.reporting.formatter import TextFormatter
from tasktrail.reporting.velocity import VelocityGenerator

logger = logging.getLogger(__name__)


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {text!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="tasktrail",
        description="TaskTrail: personal task and productivity tracker",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--velocity",
        action="store_true",
        help="Print the weekly velocity report and exit",
    )
    group.add_argument(
        "--export",
        metavar="PATH",
        help="Write the velocity report to a .docx file and exit",
    )
    parser.add_argument(
        "--weeks",
        type=_positive_int,
        default=None,
        help="Number of weeks to include (default: from config)",
    )
    return parser


def _open_store(config: dict) -> TaskStore:
    db_path = os.path.expanduser(config.get("database_path", "~/.tasktrail/tasktrail.db"))
    store = TaskStore(db_path)
    store.init_db()
    return store


def _build_report(store: TaskStore, config: dict, weeks: int | None):
    trends = get_section(config, "trends")
    generator = VelocityGenerator(store, trends["stable_threshold"])
    return generator.velocity_report(
        weeks if weeks is not None else trends["velocity_weeks"],
        trends["moving_average_window"],
    )


def _print_velocity(config: dict, weeks: int | None = None) -> None:
    """Create a store and velocity generator, then print the report."""
    store = _open_store(config)
    try:
        report = _build_report(store, config, weeks)
        print(TextFormatter.format_velocity(report))
    finally:
        store.close()


def _export_velocity(config: dict, output_path: str, weeks: int | None = None) -> None:
    """Create a store and write the velocity report to *output_path*."""
    from tasktrail.reporting.exporter import ReportExporter

    store = _open_store(config)
    try:
        report = _build_report(store, config, weeks)
        user_name = get_section(config, "report").get("user_name", "")
        path = ReportExporter().export_velocity(report, user_name, os.path.expanduser(output_path))
        print(f"Report written to {path}")
    finally:
        store.close()


def _serve(config: dict) -> None:
    """Serve the JSON API until interrupted."""
    from tasktrail.ui.web import create_flask_app

    store = _open_store(config)
    try:
        port = config.get("dashboard_port", 5555)
        logger.info("Serving API at http://127.0.0.1:%d", port)
        create_flask_app(store, config).run(host="127.0.0.1", port=port)
    finally:
        store.close()


def main(args: list[str] | None = None) -> None:
    """Entry point for TaskTrail.

    When *args* is ``None`` the arguments are read from ``sys.argv``.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = build_parser()
    parsed = parser.parse_args(args)

    config_path = get_default_config_path()
    config = load_config(str(config_path))

    if parsed.velocity:
        _print_velocity(config, parsed.weeks)
    elif parsed.export:
        _export_velocity(config, parsed.export, parsed.weeks)
    else:
        _serve(config)


if __name__ == "__main__":
    main()
