"""Task management module: storage, repository and task list state."""

from .database import TaskDatabase
from .models import Priority, SortOrder, Task, TaskStatus, TaskUiState
from .repository import TaskRepository
from .task_list_controller import TaskListController

__all__ = [
    "Task",
    "TaskStatus",
    "Priority",
    "SortOrder",
    "TaskUiState",
    "TaskDatabase",
    "TaskRepository",
    "TaskListController",
]
