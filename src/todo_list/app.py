"""Application wiring: store, repository, controller and navigation state."""

import logging

from .logging_utils import configure_logging
from .navigation import AddEdit, Home, Screen, Splash
from .task_management.config import DEFAULT_DATABASE_PATH, DEFAULT_WAL_MODE
from .task_management.database import TaskDatabase
from .task_management.models import Task
from .task_management.repository import TaskRepository
from .task_management.task_list_controller import TaskListController

logger = logging.getLogger(__name__)


class TodoApp:
    """Builds the task stack once and hands it to the presentation layer."""

    def __init__(
        self,
        db_path: str = DEFAULT_DATABASE_PATH,
        wal_mode: bool = DEFAULT_WAL_MODE,
        verbose: bool = False,
        trace: bool = False,
    ) -> None:
        """
        Initialize the application.

        Args:
            db_path: SQLite database file (use ":memory:" for a throwaway store)
            wal_mode: Enable WAL mode for the database
            verbose: Enable verbose logging
            trace: Enable trace logging, including live query dispatch
        """
        self.database = TaskDatabase(db_path, wal_mode=wal_mode)
        self.repository = TaskRepository(self.database)
        self.controller = TaskListController(self.repository)
        self.current_screen: Screen = Splash()
        self.verbose = verbose
        self.trace = trace

    async def initialize(self) -> None:
        """Open the database and start observing the task list."""
        configure_logging(verbose=self.verbose, trace=self.trace)
        logger.info("Initializing to-do app...")
        await self.database.initialize()
        await self.controller.start()
        logger.info("To-do app initialized")

    async def shutdown(self) -> None:
        """
        Stop observing and close the database.

        Handles errors gracefully to ensure cleanup completes.
        """
        logger.info("Shutting down to-do app")
        await self.controller.close()
        try:
            await self.database.close()
        except Exception as e:
            logger.error(f"Error closing database: {e}")

    def finish_splash(self) -> None:
        self.current_screen = Home()

    def open_add_task(self) -> None:
        self.current_screen = AddEdit(task_id=None)

    def open_edit_task(self, task: Task) -> None:
        self.current_screen = AddEdit(task_id=task.id)

    def navigate_back(self) -> None:
        self.current_screen = Home()

    async def load_editing_task(self) -> Task | None:
        """
        Load the task shown by the current edit screen.

        Returns:
            The task being edited, or None when not editing or it no longer exists
        """
        screen = self.current_screen
        if not isinstance(screen, AddEdit) or not screen.is_edit_mode:
            return None
        return await self.controller.get_task(screen.task_id)
