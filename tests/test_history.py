"""Tests for field history and activity derivation."""

from datetime import date, datetime

import pytest

from tasktrail.core.history import (
    activity_for_lifecycle,
    derive_changes,
    format_field_label,
    format_history,
    format_value,
    normalize_value,
)
from tasktrail.core.models import ActivityType, FieldChangeRecord

NOW = datetime(2025, 3, 4, 9, 30, 0)


class TestDeriveChanges:
    def test_status_change_emits_record_and_activity(self):
        before = {"id": "t1", "status": "todo", "priority": "medium", "project_id": "p1"}
        records, activity = derive_changes(before, {"status": "done"}, NOW)

        assert len(records) == 1
        rec = records[0]
        assert rec.entity_id == "t1"
        assert rec.field == "status"
        assert rec.old_value == "todo"
        assert rec.new_value == "done"
        assert rec.occurred_at == NOW

        assert activity is not None
        assert activity.type is ActivityType.TASK_STATUS_CHANGED
        assert activity.description == "Status changed from todo to done"
        assert activity.metadata == {"old_status": "todo", "new_status": "done"}
        assert activity.project_id == "p1"

    def test_empty_to_value(self):
        records, activity = derive_changes(
            {"description": ""}, {"description": "New description"}, NOW
        )
        assert len(records) == 1
        assert records[0].old_value == ""
        assert records[0].new_value == "New description"
        assert activity is None

    def test_missing_field_treated_as_empty(self):
        records, _ = derive_changes({"id": "t1"}, {"jira_key": "OPS-12"}, NOW)
        assert records[0].old_value == ""
        assert records[0].raw_old_value is None
        assert records[0].new_value == "OPS-12"

    def test_none_and_empty_are_equal(self):
        records, _ = derive_changes({"subcategory": None}, {"subcategory": ""}, NOW)
        assert records == []

    def test_unchanged_value_skipped(self):
        records, activity = derive_changes({"status": "todo"}, {"status": "todo"}, NOW)
        assert records == []
        assert activity is None

    def test_administrative_fields_skipped(self):
        records, _ = derive_changes(
            {"updated_at": datetime(2025, 1, 1)}, {"updated_at": NOW}, NOW
        )
        assert records == []

    def test_records_follow_payload_order(self):
        before = {"title": "a", "priority": "low", "status": "todo"}
        update = {"priority": "high", "title": "b", "status": "backlog"}
        records, _ = derive_changes(before, update, NOW)
        assert [r.field for r in records] == ["priority", "title", "status"]

    def test_status_activity_fires_alongside_other_changes(self):
        before = {"status": "todo", "priority": "low"}
        records, activity = derive_changes(before, {"priority": "high", "status": "in-progress"}, NOW)
        assert len(records) == 2
        assert activity is not None
        assert activity.metadata["new_status"] == "in-progress"

    def test_raw_values_preserved(self):
        before = {"due_date": date(2025, 1, 10)}
        records, _ = derive_changes(before, {"due_date": date(2025, 2, 1)}, NOW)
        assert records[0].old_value == "2025-01-10"
        assert records[0].raw_new_value == date(2025, 2, 1)

    def test_date_and_string_compare_equal(self):
        records, _ = derive_changes({"due_date": date(2025, 1, 10)}, {"due_date": "2025-01-10"}, NOW)
        assert records == []


class TestNormalizeValue:
    @pytest.mark.parametrize(
        "value,expected",
        [(None, ""), ("", ""), (3, "3"), (True, "true"), (False, "false"),
         (date(2025, 1, 2), "2025-01-02")],
    )
    def test_normalize(self, value, expected):
        assert normalize_value(value) == expected


class TestFormatting:
    def test_known_labels(self):
        assert format_field_label("project_id") == "Project"
        assert format_field_label("due_date") == "Due Date"

    def test_fallback_label(self):
        assert format_field_label("is_archived") == "Is archived"

    def test_format_values(self):
        assert format_value("status", "in-progress") == "In Progress"
        assert format_value("status", "") == "(empty)"
        assert format_value("priority", "high") == "High"
        assert format_value("project_id", "p1", {"p1": "Website"}) == "Website"
        assert format_value("project_id", "p9", {"p1": "Website"}) == "p9"
        assert format_value("due_date", "2025-01-02") == "Jan 02, 2025"
        assert format_value("title", "Fix login") == "Fix login"

    def test_format_history_change_types(self):
        records = [
            FieldChangeRecord(entity_id="t1", field="status", old_value="todo",
                              new_value="done", occurred_at=NOW, id=2),
            FieldChangeRecord(entity_id="t1", field="title", old_value="",
                              new_value="Fix login", occurred_at=NOW, id=1),
        ]
        entries = format_history(records)
        assert [e.change_type for e in entries] == ["status_changed", "updated"]
        assert entries[0].new_value_formatted == "Done"
        assert entries[1].old_value_formatted == "(empty)"
        assert entries[1].field_label == "Title"


class TestLifecycleActivity:
    def test_archived(self):
        task = {"id": "t1", "title": "Write docs", "project_id": "p1"}
        activity = activity_for_lifecycle(task, ActivityType.TASK_ARCHIVED, NOW)
        assert activity.description == 'Task "Write docs" archived'
        assert activity.project_id == "p1"

    def test_rejects_non_lifecycle_type(self):
        with pytest.raises(ValueError):
            activity_for_lifecycle({"id": "t1"}, ActivityType.TASK_STATUS_CHANGED, NOW)
