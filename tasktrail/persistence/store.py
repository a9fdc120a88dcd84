"""SQLite-backed persistence for tasks, field history and the activity feed."""

import json
import sqlite3
import uuid
from datetime import date, datetime
from typing import Any, Optional

from tasktrail.core.history import activity_for_lifecycle, normalize_value
from tasktrail.core.models import (
    ActivityRecord,
    ActivityType,
    BulkMutators,
    FieldChangeRecord,
    Project,
    Task,
)


# Columns a caller may change through update_task.
UPDATABLE_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "project_id",
    "due_date",
    "subcategory",
    "jira_key",
    "story_points",
    "is_archived",
    "archived_at",
    "completed_at",
)


class TaskStore:
    """Read/write interface to the local SQLite database.

    Timestamps are persisted as ISO 8601 text and booleans as 0/1 so that
    round-trip fidelity is preserved.  Operations on an unknown task id
    raise ``KeyError``.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # Schema initialisation
    # ------------------------------------------------------------------

    def init_db(self) -> None:
        """Create tables and indexes if they don't already exist."""
        conn = self._get_conn()
        conn.executescript(
            """\
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                color TEXT NOT NULL DEFAULT '',
                jira_key TEXT,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'todo',
                priority TEXT NOT NULL DEFAULT 'medium',
                project_id TEXT NOT NULL,
                due_date TEXT,
                subcategory TEXT,
                jira_key TEXT,
                story_points INTEGER,
                is_archived INTEGER NOT NULL DEFAULT 0,
                archived_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                completed_at TEXT
            );

            CREATE TABLE IF NOT EXISTS task_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id TEXT NOT NULL,
                field TEXT NOT NULL,
                old_value TEXT NOT NULL DEFAULT '',
                new_value TEXT NOT NULL DEFAULT '',
                changed_at TEXT NOT NULL,
                FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS activities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id TEXT NOT NULL,
                project_id TEXT,
                type TEXT NOT NULL,
                description TEXT NOT NULL,
                metadata TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_task_project
                ON tasks(project_id);

            CREATE INDEX IF NOT EXISTS idx_task_completed
                ON tasks(completed_at);

            CREATE INDEX IF NOT EXISTS idx_history_task
                ON task_history(task_id);

            CREATE INDEX IF NOT EXISTS idx_activity_task
                ON activities(task_id);
            """
        )
        conn.commit()

    # ------------------------------------------------------------------
    # Project operations
    # ------------------------------------------------------------------

    def add_project(self, project: Project) -> str:
        """Persist a new project. Returns the id."""
        if not project.id:
            project.id = uuid.uuid4().hex
        conn = self._get_conn()
        conn.execute(
            "INSERT INTO projects (id, name, color, jira_key, created_at) VALUES (?, ?, ?, ?, ?)",
            (
                project.id,
                project.name,
                project.color,
                project.jira_key,
                project.created_at.isoformat(),
            ),
        )
        conn.commit()
        return project.id

    def get_project(self, project_id: str) -> Optional[Project]:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_project(row)

    def get_projects(self) -> list[Project]:
        """Return all projects, newest first."""
        conn = self._get_conn()
        rows = conn.execute("SELECT * FROM projects ORDER BY created_at DESC").fetchall()
        return [self._row_to_project(r) for r in rows]

    def get_project_names(self) -> dict[str, str]:
        conn = self._get_conn()
        rows = conn.execute("SELECT id, name FROM projects").fetchall()
        return {r["id"]: r["name"] for r in rows}

    # ------------------------------------------------------------------
    # Task operations
    # ------------------------------------------------------------------

    def add_task(self, task: Task) -> str:
        """Persist a new task and its ``task_created`` activity. Returns the id."""
        if not task.id:
            task.id = uuid.uuid4().hex
        conn = self._get_conn()
        conn.execute(
            """\
            INSERT INTO tasks
                (id, title, description, status, priority, project_id, due_date,
                 subcategory, jira_key, story_points, is_archived, archived_at,
                 created_at, updated_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.id,
                task.title,
                task.description,
                task.status,
                task.priority,
                task.project_id,
                _to_text(task.due_date),
                task.subcategory,
                task.jira_key,
                task.story_points,
                1 if task.is_archived else 0,
                _to_text(task.archived_at),
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
                _to_text(task.completed_at),
            ),
        )
        conn.commit()
        self.save_activity(
            activity_for_lifecycle(task.to_dict(), ActivityType.TASK_CREATED, task.created_at)
        )
        return task.id

    def get_task(self, task_id: str) -> Optional[Task]:
        """Return a single task by id, or ``None``."""
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def _require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise KeyError(f"Task not found: {task_id}")
        return task

    def get_tasks(self, include_archived: bool = False) -> list[Task]:
        conn = self._get_conn()
        if include_archived:
            rows = conn.execute("SELECT * FROM tasks ORDER BY created_at").fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE is_archived = 0 ORDER BY created_at"
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def get_completed_tasks(self, start: datetime, end: datetime) -> list[Task]:
        """Return tasks whose completed_at falls in [start, end)."""
        conn = self._get_conn()
        rows = conn.execute(
            """\
            SELECT * FROM tasks
            WHERE completed_at IS NOT NULL AND completed_at >= ? AND completed_at < ?
            ORDER BY completed_at
            """,
            (start.isoformat(), end.isoformat()),
        ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def update_task(self, task_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply *changes* to a task and return the payload actually written.

        ``updated_at`` is always stamped.  ``completed_at`` is set when the
        status moves to ``done``.  Unknown fields raise ``ValueError``.
        """
        existing = self._require_task(task_id)
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        now = datetime.now()
        payload = dict(changes)
        if payload.get("status") == "done" and existing.status != "done":
            payload.setdefault("completed_at", now)

        assignments = ", ".join(f"{name} = ?" for name in payload)
        params = [_to_column(name, value) for name, value in payload.items()]
        conn = self._get_conn()
        conn.execute(
            f"UPDATE tasks SET {assignments}{', ' if assignments else ''}updated_at = ? WHERE id = ?",
            (*params, now.isoformat(), task_id),
        )
        conn.commit()
        return payload

    def archive_task(self, task_id: str) -> None:
        task = self._require_task(task_id)
        now = datetime.now()
        conn = self._get_conn()
        conn.execute(
            "UPDATE tasks SET is_archived = 1, archived_at = ?, updated_at = ? WHERE id = ?",
            (now.isoformat(), now.isoformat(), task_id),
        )
        conn.commit()
        self.save_activity(activity_for_lifecycle(task.to_dict(), ActivityType.TASK_ARCHIVED, now))

    def unarchive_task(self, task_id: str) -> None:
        task = self._require_task(task_id)
        now = datetime.now()
        conn = self._get_conn()
        conn.execute(
            "UPDATE tasks SET is_archived = 0, archived_at = NULL, updated_at = ? WHERE id = ?",
            (now.isoformat(), task_id),
        )
        conn.commit()
        self.save_activity(activity_for_lifecycle(task.to_dict(), ActivityType.TASK_UNARCHIVED, now))

    def delete_task(self, task_id: str) -> None:
        """Delete a task. The ``task_deleted`` activity is written first."""
        task = self._require_task(task_id)
        self.save_activity(
            activity_for_lifecycle(task.to_dict(), ActivityType.TASK_DELETED, datetime.now())
        )
        conn = self._get_conn()
        conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        conn.commit()

    def mutators(self) -> BulkMutators:
        """Return bulk-operation callbacks bound to this store."""
        return BulkMutators(
            update=self.update_task,
            archive=self.archive_task,
            delete=self.delete_task,
        )

    # ------------------------------------------------------------------
    # History operations
    # ------------------------------------------------------------------

    def save_history(self, records: list[FieldChangeRecord]) -> None:
        conn = self._get_conn()
        conn.executemany(
            """\
            INSERT INTO task_history (task_id, field, old_value, new_value, changed_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (r.entity_id, r.field, r.old_value, r.new_value, r.occurred_at.isoformat())
                for r in records
            ],
        )
        conn.commit()

    def get_history(self, task_id: str) -> list[FieldChangeRecord]:
        """Return a task's history, newest first."""
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT * FROM task_history WHERE task_id = ? ORDER BY changed_at DESC, id DESC",
            (task_id,),
        ).fetchall()
        return [
            FieldChangeRecord(
                id=r["id"],
                entity_id=r["task_id"],
                field=r["field"],
                old_value=r["old_value"],
                new_value=r["new_value"],
                occurred_at=datetime.fromisoformat(r["changed_at"]),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Activity operations
    # ------------------------------------------------------------------

    def save_activity(self, record: ActivityRecord) -> int:
        """Persist an activity record. Returns the row id."""
        conn = self._get_conn()
        cursor = conn.execute(
            """\
            INSERT INTO activities
                (task_id, project_id, type, description, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                record.task_id,
                record.project_id,
                record.type.value,
                record.description,
                json.dumps(record.metadata),
                record.created_at.isoformat(),
            ),
        )
        conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    def get_activities(self, task_id: Optional[str] = None, limit: int = 50) -> list[ActivityRecord]:
        """Return recent activities, newest first, optionally for one task."""
        conn = self._get_conn()
        if task_id is None:
            rows = conn.execute(
                "SELECT * FROM activities ORDER BY created_at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        else:
            rows = conn.execute(
                "SELECT * FROM activities WHERE task_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
                (task_id, limit),
            ).fetchall()
        return [self._row_to_activity(r) for r in rows]

    # ------------------------------------------------------------------
    # Row mapping helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            name=row["name"],
            color=row["color"],
            jira_key=row["jira_key"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            status=row["status"],
            priority=row["priority"],
            project_id=row["project_id"],
            due_date=date.fromisoformat(row["due_date"][:10]) if row["due_date"] else None,
            subcategory=row["subcategory"],
            jira_key=row["jira_key"],
            story_points=row["story_points"],
            is_archived=bool(row["is_archived"]),
            archived_at=_from_text(row["archived_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            completed_at=_from_text(row["completed_at"]),
        )

    @staticmethod
    def _row_to_activity(row: sqlite3.Row) -> ActivityRecord:
        return ActivityRecord(
            id=row["id"],
            task_id=row["task_id"],
            project_id=row["project_id"],
            type=ActivityType(row["type"]),
            description=row["description"],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


def _to_text(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _from_text(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _to_column(name: str, value: Any) -> Any:
    if name == "is_archived":
        return 1 if value else 0
    if value is None or isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return normalize_value(value)
