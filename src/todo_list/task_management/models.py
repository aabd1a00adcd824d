"""Data models for task management functionality."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .date_utils import from_epoch_millis, now, to_epoch_millis


class Priority(str, Enum):
    """Task priority enumeration, stored by name."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """Sort rank; HIGH sorts first."""
        return _PRIORITY_RANKS[self]

    @classmethod
    def from_string(cls, value: str | None) -> "Priority":
        """
        Parse a stored priority value.

        Unknown, empty or missing values normalize to LOW rather than failing.

        Args:
            value: Stored priority string

        Returns:
            Matching priority, or LOW
        """
        if not value:
            return cls.LOW
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.LOW


_PRIORITY_RANKS = {Priority.HIGH: 1, Priority.MEDIUM: 2, Priority.LOW: 3}


class TaskStatus(str, Enum):
    """Task list filter enumeration."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"

    def matches(self, task: "Task") -> bool:
        """Check whether a task belongs in this filtered view."""
        if self is TaskStatus.ACTIVE:
            return not task.is_completed
        if self is TaskStatus.COMPLETED:
            return task.is_completed
        return True


class SortOrder(str, Enum):
    """Task list sort order enumeration."""

    CREATION_DATE = "creation_date"
    DUE_DATE = "due_date"
    PRIORITY = "priority"


@dataclass(frozen=True)
class Task:
    """Represents a task item. An id of 0 means it has not been stored yet."""

    title: str
    description: str = ""
    priority: Priority = Priority.LOW
    due_date: datetime | None = None
    is_completed: bool = False
    created_at: datetime = field(default_factory=now)
    id: int = 0


@dataclass(frozen=True)
class TaskEntity:
    """Stored representation of a task; timestamps are epoch milliseconds."""

    id: int
    title: str
    description: str
    priority: str
    due_date: int | None
    is_completed: bool
    created_at: int


@dataclass(frozen=True)
class TaskUiState:
    """Snapshot of the task list state consumed by the presentation layer."""

    filter: TaskStatus = TaskStatus.ALL
    sort_order: SortOrder = SortOrder.CREATION_DATE
    recently_deleted_task: Task | None = None
    is_loading: bool = False
    error_message: str | None = None


def task_to_entity(task: Task) -> TaskEntity:
    """Convert a domain task to its stored representation."""
    return TaskEntity(
        id=task.id,
        title=task.title,
        description=task.description,
        priority=task.priority.value,
        due_date=(
            to_epoch_millis(task.due_date) if task.due_date is not None else None
        ),
        is_completed=task.is_completed,
        created_at=to_epoch_millis(task.created_at),
    )


def entity_to_task(entity: TaskEntity) -> Task:
    """Convert a stored record to a domain task."""
    return Task(
        id=entity.id,
        title=entity.title,
        description=entity.description,
        priority=Priority.from_string(entity.priority),
        due_date=(
            from_epoch_millis(entity.due_date) if entity.due_date is not None else None
        ),
        is_completed=entity.is_completed,
        created_at=from_epoch_millis(entity.created_at),
    )
