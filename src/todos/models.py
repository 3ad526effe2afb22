"""Task data model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum


class TaskStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DEFERRED = "deferred"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# Statuses that take a task out of the overdue report.
CLOSED_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Task:
    """A unit of work, optionally one occurrence of a recurring series.

    Attributes:
        id: Unique identifier (UUID hex). Empty until the store assigns one.
        owner_id: The user the task belongs to.
        title: Short human-readable title.
        description: Optional longer text.
        status: Current lifecycle status.
        priority: Low, medium, high or urgent.
        category_id: Optional category reference.
        due_date: Day the task is due (date granularity).
        created_at: Creation timestamp (UTC).
        completed_at: Set exactly when ``status`` is completed.
        estimated_minutes: Planned effort.
        actual_minutes: Effort recorded at completion.
        recurrence_rule_id: Shared rule of the series, if recurring.
        parent_task_id: The occurrence this one was generated from.
        generate_next_on_complete: Whether completing spawns the next occurrence.
    """

    owner_id: str
    title: str
    id: str = ""
    description: str | None = None
    status: TaskStatus = TaskStatus.NOT_STARTED
    priority: TaskPriority = TaskPriority.MEDIUM
    category_id: str | None = None
    due_date: date | None = None
    created_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None
    estimated_minutes: int | None = None
    actual_minutes: int | None = None
    recurrence_rule_id: str | None = None
    parent_task_id: str | None = None
    generate_next_on_complete: bool = True

    def __post_init__(self) -> None:
        self.status = TaskStatus(self.status)
        self.priority = TaskPriority(self.priority)
        if isinstance(self.due_date, datetime):
            self.due_date = self.due_date.date()
        if self.is_completed and self.completed_at is None:
            msg = f"Completed task {self.id or self.title!r} has no completed_at"
            raise ValueError(msg)
        if not self.is_completed and self.completed_at is not None:
            msg = f"Task {self.id or self.title!r} is {self.status} but has completed_at"
            raise ValueError(msg)

    # -- Convenience properties ------------------------------------------------

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def is_recurring(self) -> bool:
        return self.recurrence_rule_id is not None

    def is_overdue(self, today: date) -> bool:
        """True if the task is still open and its due date is before *today*."""
        return (
            self.status not in CLOSED_STATUSES
            and self.due_date is not None
            and self.due_date < today
        )

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``todo_items`` column order."""
        return (
            self.id,
            self.owner_id,
            self.title,
            self.description,
            str(self.status),
            str(self.priority),
            self.category_id,
            self.due_date.isoformat() if self.due_date else None,
            self.created_at.isoformat(),
            self.completed_at.isoformat() if self.completed_at else None,
            self.estimated_minutes,
            self.actual_minutes,
            self.recurrence_rule_id,
            self.parent_task_id,
            int(self.generate_next_on_complete),
        )

    @classmethod
    def from_row(cls, row: tuple) -> Task:
        """Deserialize from a database row tuple."""
        return cls(
            id=row[0],
            owner_id=row[1],
            title=row[2],
            description=row[3],
            status=TaskStatus(row[4]),
            priority=TaskPriority(row[5]),
            category_id=row[6],
            due_date=date.fromisoformat(row[7]) if row[7] else None,
            created_at=datetime.fromisoformat(row[8]),
            completed_at=datetime.fromisoformat(row[9]) if row[9] else None,
            estimated_minutes=row[10],
            actual_minutes=row[11],
            recurrence_rule_id=row[12],
            parent_task_id=row[13],
            generate_next_on_complete=bool(row[14]),
        )


def make_task_id() -> str:
    """Generate a new task ID."""
    return uuid.uuid4().hex
