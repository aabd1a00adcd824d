"""Task repository translating store records to domain tasks."""

from .interfaces import StoreQuery, TaskStore
from .live_query import LiveQuery
from .models import Task, TaskEntity, entity_to_task, task_to_entity


def _to_tasks(entities: list[TaskEntity]) -> list[Task]:
    return [entity_to_task(entity) for entity in entities]


class TaskRepository:
    """
    Domain-typed access to the task store.

    Performs no filtering or sorting of its own; every live list is the
    store's native query mapped to domain tasks.
    """

    def __init__(self, store: TaskStore) -> None:
        """
        Initialize the repository.

        Args:
            store: Initialized task store
        """
        self._store = store

    def get_all_tasks(self) -> LiveQuery[Task]:
        """All tasks, newest first."""
        return self._observe(StoreQuery.ALL)

    def get_active_tasks(self) -> LiveQuery[Task]:
        """Incomplete tasks, newest first."""
        return self._observe(StoreQuery.ACTIVE)

    def get_completed_tasks(self) -> LiveQuery[Task]:
        """Completed tasks, newest first."""
        return self._observe(StoreQuery.COMPLETED)

    def get_tasks_sorted_by_due_date(self) -> LiveQuery[Task]:
        """All tasks by due date ascending, tasks without one last."""
        return self._observe(StoreQuery.BY_DUE_DATE)

    def get_tasks_sorted_by_priority(self) -> LiveQuery[Task]:
        """All tasks from HIGH to LOW priority."""
        return self._observe(StoreQuery.BY_PRIORITY)

    def _observe(self, query: StoreQuery) -> LiveQuery[Task]:
        return self._store.observe(query).map(_to_tasks)

    async def get_task_by_id(self, task_id: int) -> Task | None:
        """
        Get a task by ID.

        Args:
            task_id: Task ID

        Returns:
            Task, or None if not found
        """
        entity = await self._store.get_by_id(task_id)
        return entity_to_task(entity) if entity is not None else None

    async def insert_task(self, task: Task) -> int:
        """
        Insert a task.

        Args:
            task: Task to store; id 0 lets the store assign one

        Returns:
            Identifier assigned by the store
        """
        return await self._store.insert(task_to_entity(task))

    async def update_task(self, task: Task) -> None:
        """Persist every field of an existing task."""
        await self._store.update(task_to_entity(task))

    async def delete_task(self, task: Task) -> None:
        """Delete a task."""
        await self._store.delete(task_to_entity(task))

    async def toggle_completion(self, task_id: int, completed: bool) -> None:
        """
        Set the completion flag of a task.

        Args:
            task_id: Task ID
            completed: New completion flag
        """
        await self._store.set_completed(task_id, completed)
