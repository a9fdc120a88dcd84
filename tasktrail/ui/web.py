"""JSON API for the TaskTrail dashboard.

A lightweight Flask app exposing:
- Projects
- Task CRUD with field history and the activity feed
- Bulk update / archive / delete
- Trend and velocity analytics
"""

import logging
import threading
from datetime import date, datetime
from typing import Any, Optional

from flask import Flask, jsonify, request

from tasktrail.core.bulk import BulkOperationEngine
from tasktrail.core.config import get_section
from tasktrail.core.history import derive_changes, format_history
from tasktrail.core.models import (
    ActivityRecord,
    BulkMutators,
    BulkOperation,
    OperationKind,
    Project,
    TASK_PRIORITIES,
    TASK_STATUSES,
    Task,
    TrendResult,
)
from tasktrail.persistence.store import TaskStore
from tasktrail.reporting.trends import moving_average, trend_line, trend_line_coordinates
from tasktrail.reporting.velocity import VelocityGenerator

logger = logging.getLogger(__name__)


def create_flask_app(store: TaskStore, config: Optional[dict] = None) -> Flask:
    config = config or {}
    bulk_cfg = get_section(config, "bulk")
    trend_cfg = get_section(config, "trends")
    engine = BulkOperationEngine(
        max_targets=bulk_cfg["max_targets"],
        ms_per_item=bulk_cfg["ms_per_item"],
    )
    velocity = VelocityGenerator(store, trend_cfg["stable_threshold"])

    app = Flask(__name__)

    def apply_update(task_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Persist *changes* and record the resulting history and status activity."""
        existing = store.get_task(task_id)
        if existing is None:
            raise KeyError(f"Task not found: {task_id}")
        written = store.update_task(task_id, changes)
        records, activity = derive_changes(existing.to_dict(), written, datetime.now())
        if records:
            store.save_history(records)
        if activity is not None:
            store.save_activity(activity)
        return written

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    @app.route("/api/projects")
    def api_projects():
        return jsonify([_project_json(p) for p in store.get_projects()])

    @app.route("/api/projects", methods=["POST"])
    def api_add_project():
        data = request.json or {}
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            return jsonify({"error": "Project name is required"}), 400
        project = Project(
            id="",
            name=name.strip(),
            color=data.get("color") or "",
            jira_key=data.get("jira_key") or None,
        )
        store.add_project(project)
        return jsonify(_project_json(project)), 201

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @app.route("/api/tasks")
    def api_tasks():
        include_archived = request.args.get("include_archived") in ("1", "true")
        return jsonify([_task_json(t) for t in store.get_tasks(include_archived)])

    @app.route("/api/tasks", methods=["POST"])
    def api_add_task():
        data = request.json or {}
        title = (data.get("title") or "").strip()
        if not title:
            return jsonify({"error": "title required"}), 400
        project_id = (data.get("project_id") or "").strip()
        if not project_id:
            return jsonify({"error": "project_id required"}), 400
        try:
            due = _parse_date(data.get("due_date"))
        except ValueError:
            return jsonify({"error": "invalid due_date"}), 400
        try:
            status = _choice("status", data.get("status") or "todo", TASK_STATUSES)
            priority = _choice("priority", data.get("priority") or "medium", TASK_PRIORITIES)
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        task = Task(
            id="",
            title=title,
            project_id=project_id,
            description=(data.get("description") or "").strip(),
            status=status,
            priority=priority,
            due_date=due,
            subcategory=(data.get("subcategory") or "").strip() or None,
        )
        store.add_task(task)
        return jsonify(_task_json(task)), 201

    @app.route("/api/tasks/<task_id>")
    def api_get_task(task_id):
        task = store.get_task(task_id)
        if task is None:
            return jsonify({"error": "Task not found"}), 404
        return jsonify(_task_json(task))

    @app.route("/api/tasks/<task_id>", methods=["PATCH"])
    def api_update_task(task_id):
        task = store.get_task(task_id)
        if task is None:
            return jsonify({"error": "Task not found"}), 404
        try:
            changes = _build_update(request.json or {})
        except ValueError as exc:
            return jsonify({"error": str(exc)}), 400
        archived = changes.pop("is_archived", None)
        if changes or archived is None:
            apply_update(task_id, changes)
        if archived is not None and archived != task.is_archived:
            if archived:
                store.archive_task(task_id)
            else:
                store.unarchive_task(task_id)
        return jsonify(_task_json(store.get_task(task_id)))

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    def api_delete_task(task_id):
        task = store.get_task(task_id)
        if task is None:
            return jsonify({"error": "Task not found"}), 404
        store.delete_task(task_id)
        return jsonify({"message": f'Task "{task.title}" deleted successfully'})

    @app.route("/api/tasks/bulk", methods=["POST"])
    def api_bulk():
        data = request.json or {}
        try:
            kind = OperationKind(data.get("operation"))
        except ValueError:
            return jsonify({"error": 'operation must be "update", "archive" or "delete"'}), 400
        task_ids = data.get("task_ids") or []
        if not isinstance(task_ids, list) or not all(isinstance(i, str) for i in task_ids):
            return jsonify({"error": "task_ids must be a list of strings"}), 400
        changes = data.get("changes")
        if changes is not None:
            try:
                changes = _build_update(changes)
            except ValueError as exc:
                return jsonify({"error": str(exc)}), 400

        operation = BulkOperation(kind=kind, target_ids=task_ids, field_changes=changes)
        reason = engine.validate(operation)
        if reason is not None:
            return jsonify({"error": reason}), 400

        mutators = BulkMutators(
            update=apply_update,
            archive=store.archive_task,
            delete=store.delete_task,
        )
        result = engine.apply(store.get_tasks(include_archived=True), operation, mutators)
        body = result.to_dict()
        body["estimated_ms"] = engine.estimate_processing_time(len(operation.target_ids))
        return jsonify(body)

    # ------------------------------------------------------------------
    # History and activity
    # ------------------------------------------------------------------

    @app.route("/api/tasks/<task_id>/history")
    def api_task_history(task_id):
        entries = format_history(store.get_history(task_id), store.get_project_names())
        return jsonify([
            {
                "id": e.id,
                "field": e.field,
                "field_label": e.field_label,
                "old_value": e.old_value,
                "new_value": e.new_value,
                "old_value_formatted": e.old_value_formatted,
                "new_value_formatted": e.new_value_formatted,
                "changed_at": e.changed_at.isoformat(),
                "change_type": e.change_type,
            }
            for e in entries
        ])

    @app.route("/api/activities")
    def api_activities():
        task_id = request.args.get("task_id")
        try:
            limit = int(request.args.get("limit", 50))
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400
        return jsonify([_activity_json(a) for a in store.get_activities(task_id, limit)])

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    @app.route("/api/analytics/trend", methods=["POST"])
    def api_trend():
        data = request.json or {}
        series = data.get("series")
        if not isinstance(series, list):
            return jsonify({"error": "series must be a list"}), 400
        window = data.get("window", trend_cfg["moving_average_window"])
        try:
            averages = moving_average(series, window)
            trend = trend_line(series, trend_cfg["stable_threshold"])
            points = trend_line_coordinates(series)
        except (ValueError, TypeError, KeyError) as exc:
            return jsonify({"error": f"invalid series: {exc}"}), 400
        return jsonify({
            "trend": _trend_json(trend),
            "points": [{"x": p.x, "y": p.y} for p in points],
            "moving_average": averages,
        })

    @app.route("/api/analytics/velocity")
    def api_velocity():
        try:
            weeks = int(request.args.get("weeks", trend_cfg["velocity_weeks"]))
        except ValueError:
            return jsonify({"error": "weeks must be an integer"}), 400
        if weeks <= 0:
            return jsonify({"error": "weeks must be positive"}), 400
        report = velocity.velocity_report(weeks, trend_cfg["moving_average_window"])
        return jsonify({
            "weeks": [
                {
                    "week": w.label,
                    "week_start": str(w.week_start),
                    "week_end": str(w.week_end),
                    "completed": w.completed,
                    "avg_cycle_days": round(w.avg_cycle_days, 1),
                }
                for w in report.weeks
            ],
            "trend": _trend_json(report.trend),
            "points": [{"x": p.x, "y": p.y} for p in report.trend_points],
            "moving_average": report.moving_average,
            "average_velocity": report.average_velocity,
        })

    @app.route("/api/config")
    def api_get_config():
        return jsonify(config)

    return app


def start_dashboard(store: TaskStore, config: dict, port: int = 5555) -> threading.Thread:
    """Start the Flask API in a daemon thread."""
    flask_app = create_flask_app(store, config)

    def _run():
        flask_app.run(host="127.0.0.1", port=port, debug=False, use_reloader=False)

    t = threading.Thread(target=_run, daemon=True, name="tasktrail-web")
    t.start()
    logger.info("Dashboard started at http://127.0.0.1:%d", port)
    return t


def _build_update(data: dict) -> dict[str, Any]:
    """Translate a request body into a store update payload, in body order."""
    if not isinstance(data, dict):
        raise ValueError("changes must be an object")
    update: dict[str, Any] = {}
    for key, value in data.items():
        if key == "title":
            update["title"] = (value or "").strip()
        elif key == "description":
            update["description"] = (value or "").strip()
        elif key == "status":
            update["status"] = _choice(key, value, TASK_STATUSES)
        elif key == "priority":
            update["priority"] = _choice(key, value, TASK_PRIORITIES)
        elif key == "project_id":
            if not isinstance(value, str) or not value.strip():
                raise ValueError("project_id must be a non-empty string")
            update["project_id"] = value.strip()
        elif key == "is_archived":
            if not isinstance(value, bool):
                raise ValueError("is_archived must be true or false")
            update["is_archived"] = value
        elif key == "due_date":
            update["due_date"] = _parse_date(value)
        elif key in ("subcategory", "jira_key"):
            update[key] = (value or "").strip() or None
        elif key == "story_points":
            update["story_points"] = value or None
        else:
            raise ValueError(f"unknown field: {key}")
    return update


def _choice(name: str, value: Any, allowed: tuple[str, ...]) -> str:
    if value not in allowed:
        raise ValueError(f"{name} must be one of: {', '.join(allowed)}")
    return value


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _project_json(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "color": project.color,
        "jira_key": project.jira_key,
        "created_at": project.created_at.isoformat(),
    }


def _task_json(task: Task) -> dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "project_id": task.project_id,
        "due_date": _iso(task.due_date),
        "subcategory": task.subcategory,
        "jira_key": task.jira_key,
        "story_points": task.story_points,
        "is_archived": task.is_archived,
        "archived_at": _iso(task.archived_at),
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
        "completed_at": _iso(task.completed_at),
    }


def _activity_json(activity: ActivityRecord) -> dict[str, Any]:
    return {
        "id": activity.id,
        "task_id": activity.task_id,
        "project_id": activity.project_id,
        "type": activity.type.value,
        "description": activity.description,
        "metadata": activity.metadata,
        "created_at": activity.created_at.isoformat(),
    }


def _trend_json(trend: TrendResult) -> dict[str, Any]:
    return {
        "direction": trend.direction.value,
        "slope": trend.slope,
        "percentage_change": trend.percentage_change,
    }
