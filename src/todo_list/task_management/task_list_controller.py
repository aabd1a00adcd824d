"""Task List Controller owning the filter, sort and undo state of the task list."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime
from typing import Any, NoReturn, TypeVar

from todo_list.logging_utils import get_logger

from .date_utils import to_epoch_millis
from .exceptions import TaskManagementError, ValidationError
from .live_query import LiveQuery, Subscription
from .models import Priority, SortOrder, Task, TaskStatus, TaskUiState
from .repository import TaskRepository

logger = get_logger(__name__)

T = TypeVar("T")

TaskListener = Callable[[list[Task]], None]
StateListener = Callable[[TaskUiState], None]


def sort_by_due_date(tasks: list[Task]) -> list[Task]:
    """
    Sort tasks by due date ascending, tasks without a due date last.

    The sort is stable, so undated tasks keep their incoming order.
    """
    return sorted(
        tasks,
        key=lambda task: (
            task.due_date is None,
            to_epoch_millis(task.due_date) if task.due_date is not None else 0,
        ),
    )


def sort_by_priority(tasks: list[Task]) -> list[Task]:
    """Sort tasks HIGH, MEDIUM, LOW; stable for equal priority."""
    return sorted(tasks, key=lambda task: task.priority.rank)


class TaskListController:
    """
    Manages the observable task list and its UI state.

    The controller is the only writer of the filter, sort order and
    pending-deletion state. Intents are applied one at a time in arrival
    order. The task list is a live query against the repository that is
    rebuilt whenever the filter or sort order changes; emissions from a
    replaced query are dropped.
    """

    def __init__(self, repository: TaskRepository) -> None:
        """
        Initialize Task List Controller.

        Args:
            repository: Repository for task persistence
        """
        self._repository = repository
        self._state = TaskUiState()
        self._tasks: list[Task] = []
        self._task_listeners: list[TaskListener] = []
        self._state_listeners: list[StateListener] = []
        self._source_subscription: Subscription | None = None
        self._generation = 0
        self._last_generation = 0
        self._started = False
        self._lock = asyncio.Lock()

    @property
    def ui_state(self) -> TaskUiState:
        """Current UI state snapshot."""
        return self._state

    @property
    def tasks(self) -> list[Task]:
        """Latest task list for the current filter and sort order."""
        return list(self._tasks)

    async def start(self) -> None:
        """Observe the task list even while no listener is registered."""
        async with self._lock:
            self._started = True
            if self._source_subscription is None:
                await self._resubscribe()
        logger.info("Task List Controller started")

    async def close(self) -> None:
        """Release the live query and drop all listeners."""
        async with self._lock:
            self._started = False
            self._task_listeners.clear()
            self._state_listeners.clear()
            self._release_source()
        logger.info("Task List Controller closed")

    async def watch_tasks(self, listener: TaskListener) -> Subscription:
        """
        Observe the filtered and sorted task list.

        The listener receives the current list right away and every list
        after it. The live query is opened with the first listener and
        released when the last one cancels, unless start() was called.

        Args:
            listener: Called with each task list

        Returns:
            Subscription handle; cancel it to stop observing
        """
        async with self._lock:
            self._task_listeners.append(listener)
            if self._source_subscription is None:
                try:
                    await self._resubscribe()
                except TaskManagementError:
                    self._task_listeners.remove(listener)
                    raise
            else:
                self._notify(listener, list(self._tasks))

        return Subscription(lambda: self._remove_task_listener(listener))

    def watch_ui_state(self, listener: StateListener) -> Subscription:
        """
        Observe the UI state.

        Args:
            listener: Called with the current state now and on every change

        Returns:
            Subscription handle; cancel it to stop observing
        """
        self._state_listeners.append(listener)
        self._notify(listener, self._state)
        return Subscription(lambda: self._remove_state_listener(listener))

    def active_task_list(self) -> LiveQuery[Task]:
        """Live query for the current filter and sort order."""
        return self._task_source(self._state.filter, self._state.sort_order)

    async def set_filter(self, status_filter: TaskStatus) -> None:
        """
        Show only tasks matching a status filter.

        Args:
            status_filter: ALL, ACTIVE or COMPLETED
        """
        async with self._lock:
            if status_filter == self._state.filter:
                return
            if self._is_observed():
                await self._resubscribe(filter=status_filter)
            else:
                self._update_state(filter=status_filter)
            logger.debug(f"Filter set to {status_filter.value}")

    async def set_sort_order(self, sort_order: SortOrder) -> None:
        """
        Change the order of the task list.

        Args:
            sort_order: CREATION_DATE, DUE_DATE or PRIORITY
        """
        async with self._lock:
            if sort_order == self._state.sort_order:
                return
            if self._is_observed():
                await self._resubscribe(sort_order=sort_order)
            else:
                self._update_state(sort_order=sort_order)
            logger.debug(f"Sort order set to {sort_order.value}")

    async def add_task(
        self,
        title: str,
        description: str = "",
        priority: Priority = Priority.LOW,
        due_date: datetime | None = None,
    ) -> int:
        """
        Add a new task.

        Args:
            title: Task title; surrounding whitespace is trimmed
            description: Optional description
            priority: Task priority
            due_date: Optional due date

        Returns:
            ID assigned to the new task

        Raises:
            ValidationError: If the title is blank
            DatabaseError: If the task cannot be stored
        """
        async with self._lock:
            if not title or not title.strip():
                self._reject("Task title cannot be blank")

            task = Task(
                title=title.strip(),
                description=description.strip(),
                priority=priority,
                due_date=due_date,
                is_completed=False,
            )
            task_id = await self._run("add task", self._repository.insert_task(task))

        logger.info(f"Added task {task_id}: {task.title}")
        return task_id

    async def update_task(self, task: Task) -> None:
        """
        Persist every field of an existing task.

        Raises:
            ValidationError: If the title is blank
            DatabaseError: If the task cannot be stored
        """
        async with self._lock:
            if not task.title or not task.title.strip():
                self._reject("Task title cannot be blank")
            await self._run("update task", self._repository.update_task(task))

        logger.info(f"Updated task {task.id}")

    async def toggle_completion(self, task: Task) -> None:
        """Flip the completion flag of a task, leaving its other fields alone."""
        async with self._lock:
            await self._run(
                "toggle task completion",
                self._repository.toggle_completion(task.id, not task.is_completed),
            )

        state = "active" if task.is_completed else "completed"
        logger.info(f"Task {task.id} marked {state}")

    async def delete_task(self, task: Task) -> None:
        """
        Delete a task and keep it for undo.

        A previously deleted task that was not restored is discarded.

        Raises:
            DatabaseError: If the task cannot be deleted
        """
        async with self._lock:
            await self._run("delete task", self._repository.delete_task(task))
            self._update_state(recently_deleted_task=task)

        logger.info(f"Deleted task {task.id}")

    async def undo_delete(self) -> int | None:
        """
        Restore the most recently deleted task.

        The task is inserted again with all of its fields, under a new ID.
        If the insert fails the task stays available for another attempt.

        Returns:
            ID of the restored task, or None if nothing was pending

        Raises:
            DatabaseError: If the task cannot be stored
        """
        async with self._lock:
            task = self._state.recently_deleted_task
            if task is None:
                return None

            task_id = await self._run(
                "restore task", self._repository.insert_task(replace(task, id=0))
            )
            self._update_state(recently_deleted_task=None)

        logger.info(f"Restored task {task.id} as {task_id}")
        return task_id

    async def clear_recently_deleted(self) -> None:
        """Forget the pending deletion without restoring it."""
        async with self._lock:
            self._update_state(recently_deleted_task=None)

    def clear_error(self) -> None:
        """Dismiss the current error message."""
        self._update_state(error_message=None)

    async def get_task(self, task_id: int) -> Task | None:
        """
        Load a single task, e.g. for editing.

        Returns:
            Task, or None if not found
        """
        return await self._run("load task", self._repository.get_task_by_id(task_id))

    def _task_source(
        self, status_filter: TaskStatus, sort_order: SortOrder
    ) -> LiveQuery[Task]:
        """Build the live query for a filter and sort order combination."""
        if status_filter == TaskStatus.ACTIVE:
            source = self._repository.get_active_tasks()
        elif status_filter == TaskStatus.COMPLETED:
            source = self._repository.get_completed_tasks()
        else:
            source = self._repository.get_all_tasks()

        # Creation date order is native to the store
        if sort_order == SortOrder.DUE_DATE:
            return source.map(sort_by_due_date)
        if sort_order == SortOrder.PRIORITY:
            return source.map(sort_by_priority)
        return source

    async def _resubscribe(self, **changes: Any) -> None:
        """
        Open the live query for the state with changes applied, then swap it in.

        The state changes and the first list of the new query are published
        together. If the query cannot be opened, the previous query, list and
        state stay in place.

        Raises:
            TaskManagementError: Re-raised after recording the error message
        """
        target = replace(self._state, **changes)
        self._last_generation += 1
        generation = self._last_generation
        opened = False
        first: list[list[Task]] = []

        def on_tasks(tasks: list[Task]) -> None:
            if not opened:
                first[:] = [tasks]
                return
            if generation != self._generation:
                logger.trace(  # type: ignore[attr-defined]
                    f"Dropping {len(tasks)} tasks from superseded query {generation}"
                )
                return
            self._publish_tasks(tasks)

        self._update_state(is_loading=True)
        try:
            subscription = await self._task_source(
                target.filter, target.sort_order
            ).subscribe(on_tasks)
        except TaskManagementError as e:
            logger.error(f"Failed to load tasks: {e}")
            self._update_state(is_loading=False, error_message=str(e))
            raise

        if not self._is_observed():
            subscription.cancel()
            self._update_state(is_loading=False, **changes)
            return

        if self._source_subscription is not None:
            self._source_subscription.cancel()
        self._source_subscription = subscription
        self._generation = generation
        opened = True
        if first:
            self._publish_tasks(first[-1], **changes)
        else:
            self._update_state(**changes)
        logger.debug(
            f"Observing {target.filter.value} tasks by "
            f"{target.sort_order.value} (query {generation})"
        )

    def _release_source(self) -> None:
        """Cancel the current live query; anything it still emits is ignored."""
        self._generation = 0
        if self._source_subscription is not None:
            self._source_subscription.cancel()
            self._source_subscription = None

    def _is_observed(self) -> bool:
        return self._started or bool(self._task_listeners)

    def _remove_task_listener(self, listener: TaskListener) -> None:
        if listener in self._task_listeners:
            self._task_listeners.remove(listener)
        if not self._is_observed():
            self._release_source()
            logger.debug("No task list observers left, live query released")

    def _remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    def _publish_tasks(self, tasks: list[Task], **changes: Any) -> None:
        # The list is swapped before state listeners run so both read together
        self._tasks = tasks
        self._update_state(is_loading=False, **changes)
        for listener in list(self._task_listeners):
            self._notify(listener, list(tasks))

    def _update_state(self, **changes: Any) -> None:
        new_state = replace(self._state, **changes)
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._state_listeners):
            self._notify(listener, new_state)

    def _notify(self, listener: Callable[[T], None], value: T) -> None:
        try:
            listener(value)
        except Exception as e:
            logger.error(f"Error in task list listener: {e}")

    def _reject(self, message: str) -> NoReturn:
        """Record a validation failure and raise it."""
        logger.warning(message)
        self._update_state(error_message=message)
        raise ValidationError(message)

    async def _run(self, action: str, operation: Awaitable[T]) -> T:
        """
        Await a repository operation, surfacing failures in the UI state.

        Raises:
            TaskManagementError: Re-raised after recording the error message
        """
        try:
            return await operation
        except TaskManagementError as e:
            logger.error(f"Failed to {action}: {e}")
            self._update_state(error_message=str(e))
            raise
