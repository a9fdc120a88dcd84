"""Core data models for TaskTrail.

Defines all dataclasses and enums used across the application:
- Projects and tasks: Project, Task
- Bulk operations: OperationKind, BulkOperation, BulkFailure,
  BulkOperationResult, BulkMutators
- History: FieldChangeRecord, HistoryEntry
- Activity feed: ActivityType, ActivityRecord
- Analytics: DataPoint, TrendDirection, TrendResult, TrendPoint,
  VelocityWeek, VelocityReport
- Keyboard shortcuts: KeyEvent, KeyboardShortcut, ShortcutConflict
"""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Optional


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

TASK_STATUSES = ("backlog", "todo", "in-progress", "done")
TASK_PRIORITIES = ("low", "medium", "high")


@dataclass
class Project:
    """A named group of tasks."""
    id: str
    name: str
    color: str = ""
    jira_key: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Task:
    """A tracked unit of work belonging to a project."""
    id: str
    title: str
    project_id: str
    description: str = ""
    status: str = "todo"
    priority: str = "medium"
    due_date: Optional[date] = None
    subcategory: Optional[str] = None
    jira_key: Optional[str] = None
    story_points: Optional[int] = None
    is_archived: bool = False
    archived_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Return a plain key-value snapshot of the task."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Bulk operations
# ---------------------------------------------------------------------------

BULK_UPDATE_FIELDS = frozenset({"status", "priority", "project_id", "due_date", "subcategory"})


class OperationKind(Enum):
    """Kind of operation applied uniformly to every target of a batch."""
    UPDATE = "update"
    ARCHIVE = "archive"
    DELETE = "delete"


@dataclass
class BulkOperation:
    """A batch request: one operation kind applied to a set of task ids."""
    kind: OperationKind
    target_ids: list[str]
    field_changes: Optional[dict[str, Any]] = None

    def __post_init__(self) -> None:
        # ordered set: keep first occurrence of each id
        self.target_ids = list(dict.fromkeys(self.target_ids or []))


@dataclass
class BulkFailure:
    """A single failed target within a batch."""
    target_id: str
    reason: str


@dataclass
class BulkOperationResult:
    """Per-item outcome of a bulk operation."""
    overall_success: bool
    succeeded_count: int = 0
    failed_count: int = 0
    failures: list[BulkFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BulkMutators:
    """Per-item mutation callbacks supplied by the caller of the bulk engine."""
    update: Callable[[str, dict[str, Any]], Any]
    archive: Callable[[str], Any]
    delete: Callable[[str], Any]


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

@dataclass
class FieldChangeRecord:
    """A single field-level delta on a task.

    ``old_value`` and ``new_value`` hold the normalized string form that is
    persisted; the raw values are kept alongside for display.
    """
    entity_id: str
    field: str
    old_value: str
    new_value: str
    occurred_at: datetime
    raw_old_value: Any = None
    raw_new_value: Any = None
    id: int = 0


@dataclass
class HistoryEntry:
    """A display-ready history row."""
    id: int
    task_id: str
    field: str
    field_label: str
    old_value: str
    new_value: str
    old_value_formatted: str
    new_value_formatted: str
    changed_at: datetime
    change_type: str  # created | updated | status_changed | deleted


# ---------------------------------------------------------------------------
# Activity feed
# ---------------------------------------------------------------------------

class ActivityType(Enum):
    """Semantic event types shown in the activity feed."""
    TASK_CREATED = "task_created"
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_ARCHIVED = "task_archived"
    TASK_UNARCHIVED = "task_unarchived"
    TASK_DELETED = "task_deleted"


@dataclass
class ActivityRecord:
    """A higher-level event derived from changes to a task."""
    id: int
    task_id: str
    project_id: Optional[str]
    type: ActivityType
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

@dataclass
class DataPoint:
    """A series value, optionally tagged with its position."""
    value: float
    index: Optional[int] = None


class TrendDirection(Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


@dataclass
class TrendResult:
    """Direction and magnitude of a least-squares trend."""
    direction: TrendDirection
    slope: float
    percentage_change: int


@dataclass
class TrendPoint:
    """One coordinate on a fitted trend line."""
    x: int
    y: float


@dataclass
class VelocityWeek:
    """Tasks completed during one rolling 7-day window."""
    label: str
    week_start: date
    week_end: date
    completed: int
    avg_cycle_days: float = 0.0


@dataclass
class VelocityReport:
    """Weekly velocity series with its trend and smoothing."""
    weeks: list[VelocityWeek] = field(default_factory=list)
    trend: TrendResult = field(
        default_factory=lambda: TrendResult(TrendDirection.STABLE, 0.0, 0)
    )
    trend_points: list[TrendPoint] = field(default_factory=list)
    moving_average: list[Optional[float]] = field(default_factory=list)
    average_velocity: float = 0.0


# ---------------------------------------------------------------------------
# Keyboard shortcuts
# ---------------------------------------------------------------------------

@dataclass
class KeyEvent:
    """A key press as delivered by the front end."""
    key: str
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    meta: bool = False
    target_tag: Optional[str] = None  # tag name of the focused element
    content_editable: bool = False


@dataclass
class KeyboardShortcut:
    """A key combination bound to an action."""
    key: str
    description: str
    action: Callable[[], Any]
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    meta: bool = False
    category: str = ""
    enabled: bool = True


@dataclass
class ShortcutConflict:
    """Shortcut ids that resolve to the same key combination."""
    shortcut: str
    ids: list[str]
