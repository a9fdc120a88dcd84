"""Field history and activity derivation for task updates.

``derive_changes`` compares a task snapshot with an update payload and
produces the per-field history records plus, when the status moves, a
status-transition activity.  The formatting helpers turn stored history
records into display rows.
"""

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Optional

from tasktrail.core.models import (
    ActivityRecord,
    ActivityType,
    FieldChangeRecord,
    HistoryEntry,
)

# Fields the store maintains itself; never part of the history log.
ADMINISTRATIVE_FIELDS = frozenset({"updated_at"})

FIELD_LABELS = {
    "title": "Title",
    "description": "Description",
    "status": "Status",
    "priority": "Priority",
    "project_id": "Project",
    "due_date": "Due Date",
    "subcategory": "Subcategory",
    "jira_key": "Jira Key",
    "story_points": "Story Points",
}

STATUS_LABELS = {
    "backlog": "Backlog",
    "todo": "To Do",
    "in-progress": "In Progress",
    "done": "Done",
}

EMPTY_VALUE = "(empty)"


def normalize_value(value: Any) -> str:
    """Return the string form used to compare and persist field values."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def derive_changes(
    before: Mapping[str, Any],
    update: Mapping[str, Any],
    occurred_at: datetime,
) -> tuple[list[FieldChangeRecord], Optional[ActivityRecord]]:
    """Compute history records and the status activity for an update.

    Records follow the key order of *update*.  A field missing from
    *before* is treated as empty, so setting it for the first time is
    recorded as a change from ``""``.
    """
    entity_id = before.get("id", "")
    records: list[FieldChangeRecord] = []

    for field_name, new_value in update.items():
        if field_name in ADMINISTRATIVE_FIELDS:
            continue
        old_value = before.get(field_name)
        old_str = normalize_value(old_value)
        new_str = normalize_value(new_value)
        if old_str == new_str:
            continue
        records.append(
            FieldChangeRecord(
                entity_id=entity_id,
                field=field_name,
                old_value=old_str,
                new_value=new_str,
                occurred_at=occurred_at,
                raw_old_value=old_value,
                raw_new_value=new_value,
            )
        )

    return records, status_activity(before, update, occurred_at)


def status_activity(
    before: Mapping[str, Any],
    update: Mapping[str, Any],
    occurred_at: datetime,
) -> Optional[ActivityRecord]:
    """Return a ``task_status_changed`` activity if *update* moves the status."""
    new_status = update.get("status")
    old_status = before.get("status")
    if not new_status or new_status == old_status:
        return None
    return ActivityRecord(
        id=0,
        task_id=before.get("id", ""),
        project_id=update.get("project_id") or before.get("project_id"),
        type=ActivityType.TASK_STATUS_CHANGED,
        description=f"Status changed from {old_status} to {new_status}",
        metadata={"old_status": old_status, "new_status": new_status},
        created_at=occurred_at,
    )


_LIFECYCLE_VERBS = {
    ActivityType.TASK_CREATED: "created",
    ActivityType.TASK_ARCHIVED: "archived",
    ActivityType.TASK_UNARCHIVED: "unarchived",
    ActivityType.TASK_DELETED: "deleted",
}


def activity_for_lifecycle(
    task: Mapping[str, Any],
    activity_type: ActivityType,
    occurred_at: datetime,
) -> ActivityRecord:
    """Build the activity written when a task is created, archived or deleted."""
    verb = _LIFECYCLE_VERBS.get(activity_type)
    if verb is None:
        raise ValueError(f"{activity_type.value} is not a lifecycle activity")
    return ActivityRecord(
        id=0,
        task_id=task.get("id", ""),
        project_id=task.get("project_id"),
        type=activity_type,
        description=f'Task "{task.get("title", "")}" {verb}',
        created_at=occurred_at,
    )


# ---------------------------------------------------------------------------
# Display formatting
# ---------------------------------------------------------------------------

def format_field_label(field_name: str) -> str:
    label = FIELD_LABELS.get(field_name)
    if label:
        return label
    text = field_name.replace("_", " ")
    return text[:1].upper() + text[1:]


def format_value(
    field_name: str,
    value: str,
    project_names: Optional[Mapping[str, str]] = None,
) -> str:
    """Render a stored history value for display."""
    if not value:
        return EMPTY_VALUE
    if field_name == "status":
        return STATUS_LABELS.get(value, value)
    if field_name == "priority":
        return value[:1].upper() + value[1:]
    if field_name == "project_id":
        return (project_names or {}).get(value, value)
    if field_name == "due_date":
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return value
        return parsed.strftime("%b %d, %Y")
    return value


def format_history(
    records: list[FieldChangeRecord],
    project_names: Optional[Mapping[str, str]] = None,
) -> list[HistoryEntry]:
    """Turn stored history records into display rows, preserving their order."""
    entries = []
    for record in records:
        entries.append(
            HistoryEntry(
                id=record.id,
                task_id=record.entity_id,
                field=record.field,
                field_label=format_field_label(record.field),
                old_value=record.old_value,
                new_value=record.new_value,
                old_value_formatted=format_value(record.field, record.old_value, project_names),
                new_value_formatted=format_value(record.field, record.new_value, project_names),
                changed_at=record.occurred_at,
                change_type="status_changed" if record.field == "status" else "updated",
            )
        )
    return entries
