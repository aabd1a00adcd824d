"""Integration tests for Task List Controller with a real database."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from todo_list.task_management.database import TaskDatabase
from todo_list.task_management.exceptions import DatabaseError, ValidationError
from todo_list.task_management.models import Priority, SortOrder, Task, TaskStatus
from todo_list.task_management.repository import TaskRepository
from todo_list.task_management.task_list_controller import TaskListController

BASE = datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)
DAY_1 = datetime(2026, 1, 1, tzinfo=timezone.utc)
DAY_5 = datetime(2026, 1, 5, tzinfo=timezone.utc)


def titles(tasks: list[Task]) -> list[str]:
    return [task.title for task in tasks]


def without_id(task: Task) -> Task:
    return replace(task, id=0)


@pytest_asyncio.fixture
async def database() -> AsyncIterator[TaskDatabase]:
    db = TaskDatabase(":memory:")
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
def repository(database: TaskDatabase) -> TaskRepository:
    return TaskRepository(database)


@pytest_asyncio.fixture
async def controller(repository: TaskRepository) -> AsyncIterator[TaskListController]:
    task_list = TaskListController(repository)
    yield task_list
    await task_list.close()


@pytest_asyncio.fixture
async def mixed_tasks(repository: TaskRepository) -> dict[str, Task]:
    """Five tasks with mixed completion, due dates and priorities."""
    tasks = [
        Task(title="Buy milk", created_at=BASE),
        Task(
            title="File taxes",
            priority=Priority.HIGH,
            due_date=DAY_5,
            created_at=BASE + timedelta(minutes=1),
        ),
        Task(
            title="Clean desk",
            priority=Priority.MEDIUM,
            due_date=DAY_1,
            is_completed=True,
            created_at=BASE + timedelta(minutes=2),
        ),
        Task(
            title="Call mom",
            priority=Priority.HIGH,
            created_at=BASE + timedelta(minutes=3),
        ),
        Task(
            title="Pay rent",
            priority=Priority.LOW,
            due_date=DAY_1,
            is_completed=True,
            created_at=BASE + timedelta(minutes=4),
        ),
    ]
    stored = {}
    for task in tasks:
        task_id = await repository.insert_task(task)
        stored[task.title] = replace(task, id=task_id)
    return stored


@pytest.mark.integration
@pytest.mark.asyncio
class TestScenario:
    """The three-task scenario from the product description."""

    async def test_priority_and_due_date_orders(
        self, controller: TaskListController
    ) -> None:
        await controller.add_task("Buy milk")
        await controller.add_task("File taxes", priority=Priority.HIGH, due_date=DAY_1)
        await controller.add_task(
            "Clean desk", priority=Priority.MEDIUM, due_date=DAY_5
        )
        await controller.watch_tasks(lambda tasks: None)

        await controller.set_sort_order(SortOrder.PRIORITY)
        assert titles(controller.tasks) == ["File taxes", "Clean desk", "Buy milk"]

        await controller.set_sort_order(SortOrder.DUE_DATE)
        assert titles(controller.tasks) == ["File taxes", "Clean desk", "Buy milk"]


@pytest.mark.integration
@pytest.mark.asyncio
class TestFilterSortCombinations:
    """Every filter and sort combination against real data."""

    @pytest.mark.parametrize(
        "status_filter,sort_order,expected",
        [
            (
                TaskStatus.ALL,
                SortOrder.CREATION_DATE,
                ["Pay rent", "Call mom", "Clean desk", "File taxes", "Buy milk"],
            ),
            (
                TaskStatus.ALL,
                SortOrder.DUE_DATE,
                ["Pay rent", "Clean desk", "File taxes", "Call mom", "Buy milk"],
            ),
            (
                TaskStatus.ALL,
                SortOrder.PRIORITY,
                ["Call mom", "File taxes", "Clean desk", "Pay rent", "Buy milk"],
            ),
            (
                TaskStatus.ACTIVE,
                SortOrder.CREATION_DATE,
                ["Call mom", "File taxes", "Buy milk"],
            ),
            (
                TaskStatus.ACTIVE,
                SortOrder.DUE_DATE,
                ["File taxes", "Call mom", "Buy milk"],
            ),
            (
                TaskStatus.ACTIVE,
                SortOrder.PRIORITY,
                ["Call mom", "File taxes", "Buy milk"],
            ),
            (
                TaskStatus.COMPLETED,
                SortOrder.CREATION_DATE,
                ["Pay rent", "Clean desk"],
            ),
            (
                TaskStatus.COMPLETED,
                SortOrder.DUE_DATE,
                ["Pay rent", "Clean desk"],
            ),
            (
                TaskStatus.COMPLETED,
                SortOrder.PRIORITY,
                ["Clean desk", "Pay rent"],
            ),
        ],
    )
    async def test_combination(
        self,
        controller: TaskListController,
        mixed_tasks: dict[str, Task],
        status_filter: TaskStatus,
        sort_order: SortOrder,
        expected: list[str],
    ) -> None:
        await controller.watch_tasks(lambda tasks: None)

        await controller.set_filter(status_filter)
        await controller.set_sort_order(sort_order)

        assert titles(controller.tasks) == expected
        assert all(status_filter.matches(task) for task in controller.tasks)

    async def test_undated_task_sorts_last_regardless_of_insert_order(
        self, controller: TaskListController
    ) -> None:
        await controller.add_task("Dated late", due_date=DAY_5)
        await controller.add_task("Undated")
        await controller.add_task("Dated early", due_date=DAY_1)
        await controller.set_sort_order(SortOrder.DUE_DATE)

        await controller.watch_tasks(lambda tasks: None)

        assert titles(controller.tasks) == ["Dated early", "Dated late", "Undated"]


@pytest.mark.integration
@pytest.mark.asyncio
class TestLiveUpdates:
    """The derived list follows writes made through the controller."""

    async def test_added_task_appears(self, controller: TaskListController) -> None:
        received: list[list[Task]] = []
        await controller.watch_tasks(received.append)

        await controller.add_task("Fresh task")

        assert [titles(tasks) for tasks in received] == [[], ["Fresh task"]]

    async def test_toggle_moves_task_between_views(
        self, controller: TaskListController, mixed_tasks: dict[str, Task]
    ) -> None:
        await controller.watch_tasks(lambda tasks: None)
        await controller.set_filter(TaskStatus.ACTIVE)
        assert "Buy milk" in titles(controller.tasks)

        await controller.toggle_completion(mixed_tasks["Buy milk"])

        assert "Buy milk" not in titles(controller.tasks)
        await controller.set_filter(TaskStatus.COMPLETED)
        assert "Buy milk" in titles(controller.tasks)
        await controller.set_filter(TaskStatus.ALL)
        assert titles(controller.tasks).count("Buy milk") == 1

    async def test_update_keeps_identity(
        self,
        controller: TaskListController,
        repository: TaskRepository,
        mixed_tasks: dict[str, Task],
    ) -> None:
        original = mixed_tasks["Buy milk"]
        edited = replace(original, title="Buy oat milk", priority=Priority.MEDIUM)

        await controller.update_task(edited)

        assert await repository.get_task_by_id(original.id) == edited

    async def test_blank_title_leaves_store_untouched(
        self, controller: TaskListController, repository: TaskRepository
    ) -> None:
        with pytest.raises(ValidationError):
            await controller.add_task("   ")

        assert await repository.get_all_tasks().snapshot() == []


@pytest.mark.integration
@pytest.mark.asyncio
class TestDeleteAndUndo:
    """Deletion staging and restore against the real store."""

    async def test_delete_then_undo_restores_fields(
        self, controller: TaskListController, mixed_tasks: dict[str, Task]
    ) -> None:
        await controller.watch_tasks(lambda tasks: None)
        await controller.set_sort_order(SortOrder.PRIORITY)
        task = mixed_tasks["File taxes"]

        await controller.delete_task(task)
        assert "File taxes" not in titles(controller.tasks)

        restored_id = await controller.undo_delete()

        assert restored_id is not None
        restored = await controller.get_task(restored_id)
        assert restored is not None
        assert without_id(restored) == without_id(task)
        assert restored in controller.tasks
        assert titles(controller.tasks)[:2] == ["Call mom", "File taxes"]
        assert controller.ui_state.recently_deleted_task is None

    async def test_undo_restores_latest_deletion_only(
        self, controller: TaskListController, mixed_tasks: dict[str, Task]
    ) -> None:
        first = mixed_tasks["Buy milk"]
        second = mixed_tasks["Call mom"]

        await controller.delete_task(first)
        await controller.delete_task(second)
        assert controller.ui_state.recently_deleted_task == second

        await controller.undo_delete()

        await controller.watch_tasks(lambda tasks: None)
        assert "Call mom" in titles(controller.tasks)
        assert "Buy milk" not in titles(controller.tasks)

    async def test_concurrent_intents_keep_latest_deletion(
        self,
        controller: TaskListController,
        repository: TaskRepository,
        mixed_tasks: dict[str, Task],
    ) -> None:
        """Test that overlapping toggle and deletes leave consistent state."""
        first = mixed_tasks["Buy milk"]
        second = mixed_tasks["Call mom"]
        await controller.watch_tasks(lambda tasks: None)

        await asyncio.gather(
            controller.toggle_completion(first),
            controller.delete_task(first),
            controller.delete_task(second),
        )

        assert controller.ui_state.recently_deleted_task == second
        assert await repository.get_task_by_id(first.id) is None
        assert await repository.get_task_by_id(second.id) is None
        assert titles(controller.tasks) == ["Pay rent", "Clean desk", "File taxes"]

        await controller.undo_delete()

        assert "Call mom" in titles(controller.tasks)
        assert "Buy milk" not in titles(controller.tasks)

    async def test_clear_recently_deleted_does_not_restore(
        self, controller: TaskListController, mixed_tasks: dict[str, Task]
    ) -> None:
        await controller.delete_task(mixed_tasks["Buy milk"])

        await controller.clear_recently_deleted()

        assert await controller.undo_delete() is None
        await controller.watch_tasks(lambda tasks: None)
        assert "Buy milk" not in titles(controller.tasks)


@pytest.mark.integration
@pytest.mark.asyncio
class TestStorageFailures:
    """Failures of the real store surface through the UI state."""

    async def test_closed_database_surfaces_error(
        self, controller: TaskListController, database: TaskDatabase
    ) -> None:
        await controller.watch_tasks(lambda tasks: None)
        await controller.add_task("Before close")
        await database.close()

        with pytest.raises(DatabaseError):
            await controller.add_task("After close")

        assert controller.ui_state.error_message == "Database not initialized"
        assert titles(controller.tasks) == ["Before close"]

    @pytest.mark.parametrize(
        "change,field,unchanged",
        [
            ("set_filter", "filter", TaskStatus.ALL),
            ("set_sort_order", "sort_order", SortOrder.CREATION_DATE),
        ],
    )
    async def test_failed_view_change_keeps_previous_view(
        self,
        controller: TaskListController,
        repository: TaskRepository,
        database: TaskDatabase,
        change: str,
        field: str,
        unchanged: TaskStatus | SortOrder,
    ) -> None:
        """Test that a view change the store rejects leaves list and state alone."""
        await controller.watch_tasks(lambda tasks: None)
        await controller.add_task("Active one")
        await repository.insert_task(
            Task(title="Done one", is_completed=True, created_at=BASE)
        )
        before = controller.tasks
        await database.close()

        target = TaskStatus.ACTIVE if change == "set_filter" else SortOrder.PRIORITY
        with pytest.raises(DatabaseError):
            await getattr(controller, change)(target)

        assert getattr(controller.ui_state, field) == unchanged
        assert controller.ui_state.error_message == "Database not initialized"
        assert controller.ui_state.is_loading is False
        assert controller.tasks == before
        assert controller._source_subscription is not None

        await database.initialize()
        await getattr(controller, change)(target)

        assert getattr(controller.ui_state, field) == target

    async def test_live_query_released_after_last_observer(
        self, controller: TaskListController, database: TaskDatabase
    ) -> None:
        subscription = await controller.watch_tasks(lambda tasks: None)
        assert len(database._watchers) == 1

        await controller.set_filter(TaskStatus.ACTIVE)
        assert len(database._watchers) == 1

        subscription.cancel()
        assert database._watchers == []
