"""Database layer for task management using SQLite."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import aiosqlite

from todo_list.logging_utils import get_logger
from todo_list.task_management.config import SCHEMA_VERSION
from todo_list.task_management.exceptions import DatabaseError, SchemaError
from todo_list.task_management.interfaces import StoreQuery, TaskStore
from todo_list.task_management.live_query import Listener, LiveQuery, Subscription
from todo_list.task_management.models import TaskEntity

logger = get_logger(__name__)

_NEWEST_FIRST = "createdAt DESC, id DESC"

_QUERIES = {
    StoreQuery.ALL: f"SELECT * FROM tasks ORDER BY {_NEWEST_FIRST}",
    StoreQuery.ACTIVE: (
        f"SELECT * FROM tasks WHERE isCompleted = 0 ORDER BY {_NEWEST_FIRST}"
    ),
    StoreQuery.COMPLETED: (
        f"SELECT * FROM tasks WHERE isCompleted = 1 ORDER BY {_NEWEST_FIRST}"
    ),
    StoreQuery.BY_DUE_DATE: f"""
        SELECT * FROM tasks
        ORDER BY CASE WHEN dueDate IS NULL THEN 1 ELSE 0 END, dueDate ASC,
                 {_NEWEST_FIRST}
    """,
    # Unknown priorities read back as LOW, so they rank with LOW here too
    StoreQuery.BY_PRIORITY: f"""
        SELECT * FROM tasks
        ORDER BY
            CASE priority
                WHEN 'HIGH' THEN 1
                WHEN 'MEDIUM' THEN 2
                ELSE 3
            END,
            {_NEWEST_FIRST}
    """,
}


@dataclass(eq=False)
class _Watcher:
    """A live query subscriber and the last snapshot it was sent."""

    query: StoreQuery
    listener: Listener[TaskEntity]
    last_snapshot: list[TaskEntity]


class TaskDatabase(TaskStore):
    """SQLite database for task storage with live query support."""

    def __init__(self, db_path: str, wal_mode: bool = True) -> None:
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file (use ":memory:" for in-memory)
            wal_mode: Enable WAL mode for concurrent access
        """
        self.db_path = db_path
        self.wal_mode = wal_mode
        self._connection: aiosqlite.Connection | None = None
        self._watchers: list[_Watcher] = []
        # Serializes writes, their dispatch, and subscription registration
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize database schema and connection."""
        if self._connection is None:
            if self.db_path != ":memory:":
                Path(self.db_path).expanduser().parent.mkdir(
                    parents=True, exist_ok=True
                )

            try:
                self._connection = await aiosqlite.connect(self.db_path)
            except aiosqlite.Error as e:
                raise DatabaseError(f"Failed to open database: {e}") from e
            self._connection.row_factory = aiosqlite.Row

            # Enable WAL mode for concurrent access (not supported in :memory:)
            if self.wal_mode and self.db_path != ":memory:":
                await self._connection.execute("PRAGMA journal_mode=WAL")

        await self._create_schema()
        logger.info(f"Task database ready at {self.db_path}")

    async def _create_schema(self) -> None:
        """Create the schema, recreating it when the stored version differs."""
        async with self._get_connection() as conn:
            try:
                await conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INTEGER PRIMARY KEY,
                        applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                    )
                    """
                )

                cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
                result = await cursor.fetchone()
                current_version = result[0] if result and result[0] is not None else 0

                if current_version != SCHEMA_VERSION:
                    if current_version:
                        logger.warning(
                            f"Schema version {current_version} is incompatible with "
                            f"{SCHEMA_VERSION}, recreating tasks table"
                        )
                    await self._recreate_schema(conn)

                await conn.commit()
            except aiosqlite.Error as e:
                raise SchemaError(f"Failed to create schema: {e}") from e

    async def _recreate_schema(self, conn: aiosqlite.Connection) -> None:
        """
        Drop and recreate the tasks table at the current schema version.

        Args:
            conn: Database connection
        """
        await conn.execute("DROP TABLE IF EXISTS tasks")
        await conn.execute(
            """
            CREATE TABLE tasks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                priority TEXT NOT NULL,
                dueDate INTEGER,
                isCompleted INTEGER NOT NULL,
                createdAt INTEGER NOT NULL
            )
            """
        )

        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tasks_is_completed ON tasks(isCompleted)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(createdAt)"
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks(dueDate)"
        )

        await conn.execute("DELETE FROM schema_version")
        await conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
        )

    @asynccontextmanager
    async def _get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Get database connection context manager.

        Yields:
            Database connection

        Raises:
            DatabaseError: If connection is not initialized
        """
        if self._connection is None:
            raise DatabaseError("Database not initialized")
        yield self._connection

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run a write and commit it, rolling back on failure.

        Args:
            action: Description used in the error message

        Raises:
            DatabaseError: If the write or commit fails
        """
        async with self._get_connection() as conn:
            try:
                yield conn
                await conn.commit()
            except aiosqlite.Error as e:
                await conn.rollback()
                raise DatabaseError(f"Failed to {action}: {e}") from e

    async def get_schema_version(self) -> int:
        """
        Get current schema version.

        Returns:
            Schema version number
        """
        async with self._get_connection() as conn:
            cursor = await conn.execute("SELECT MAX(version) FROM schema_version")
            result = await cursor.fetchone()
            return result[0] if result and result[0] is not None else 0

    async def close(self) -> None:
        """Close database connection."""
        self._watchers.clear()
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def insert(self, record: TaskEntity) -> int:
        """
        Insert a task record.

        Args:
            record: Record to insert; id 0 lets the database assign one

        Returns:
            Identifier of the stored record

        Raises:
            DatabaseError: If insertion fails
        """
        async with self._write_lock:
            async with self._transaction("insert task") as conn:
                if record.id:
                    cursor = await conn.execute(
                        """
                        INSERT OR REPLACE INTO tasks (
                            id, title, description, priority, dueDate,
                            isCompleted, createdAt
                        ) VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (record.id, *self._entity_values(record)),
                    )
                else:
                    cursor = await conn.execute(
                        """
                        INSERT INTO tasks (
                            title, description, priority, dueDate,
                            isCompleted, createdAt
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        self._entity_values(record),
                    )
                task_id = cursor.lastrowid

            logger.debug(f"Inserted task {task_id}")
            await self._dispatch_changes()

        return task_id

    async def update(self, record: TaskEntity) -> None:
        """
        Update every field of a task except its creation time.

        Args:
            record: Record carrying the id and new values

        Raises:
            DatabaseError: If the update fails
        """
        async with self._write_lock:
            async with self._transaction("update task") as conn:
                cursor = await conn.execute(
                    """
                    UPDATE tasks
                    SET title = ?, description = ?, priority = ?, dueDate = ?,
                        isCompleted = ?
                    WHERE id = ?
                    """,
                    (*self._entity_values(record)[:-1], record.id),
                )
                changed = cursor.rowcount > 0

            if not changed:
                logger.debug(f"Task {record.id} not found, nothing to update")
                return
            await self._dispatch_changes()

    async def set_completed(self, task_id: int, completed: bool) -> None:
        """
        Update the completion flag of a task.

        Args:
            task_id: Task ID
            completed: New completion flag

        Raises:
            DatabaseError: If the update fails
        """
        async with self._write_lock:
            async with self._transaction("update task completion") as conn:
                cursor = await conn.execute(
                    "UPDATE tasks SET isCompleted = ? WHERE id = ?",
                    (int(completed), task_id),
                )
                changed = cursor.rowcount > 0

            if not changed:
                logger.debug(f"Task {task_id} not found, nothing to toggle")
                return
            await self._dispatch_changes()

    async def delete(self, record: TaskEntity) -> None:
        """
        Delete a task.

        Args:
            record: Record whose id identifies the row to delete

        Raises:
            DatabaseError: If deletion fails
        """
        async with self._write_lock:
            async with self._transaction("delete task") as conn:
                cursor = await conn.execute(
                    "DELETE FROM tasks WHERE id = ?", (record.id,)
                )
                changed = cursor.rowcount > 0

            if not changed:
                logger.debug(f"Task {record.id} not found, nothing to delete")
                return
            await self._dispatch_changes()

    async def get_by_id(self, task_id: int) -> TaskEntity | None:
        """
        Get a task by ID.

        Args:
            task_id: Task ID

        Returns:
            Task record, or None if not found

        Raises:
            DatabaseError: If the query fails
        """
        async with self._get_connection() as conn:
            try:
                cursor = await conn.execute(
                    "SELECT * FROM tasks WHERE id = ?", (task_id,)
                )
                row = await cursor.fetchone()
            except aiosqlite.Error as e:
                raise DatabaseError(f"Failed to load task {task_id}: {e}") from e

        return self._row_to_entity(row) if row is not None else None

    def observe(self, query: StoreQuery) -> LiveQuery[TaskEntity]:
        """
        Build a live query over the tasks table.

        Args:
            query: Which tasks to return, and in which order

        Returns:
            Live query emitting full snapshots
        """

        async def subscribe(listener: Listener[TaskEntity]) -> Subscription:
            async with self._write_lock:
                snapshot = await self._fetch(query)
                watcher = _Watcher(query, listener, snapshot)
                self._watchers.append(watcher)
                logger.debug(
                    f"Live query {query.value} subscribed "
                    f"({len(self._watchers)} active)"
                )
                self._deliver(watcher, snapshot)

            return Subscription(lambda: self._remove_watcher(watcher))

        return LiveQuery(subscribe)

    def _remove_watcher(self, watcher: _Watcher) -> None:
        if watcher in self._watchers:
            self._watchers.remove(watcher)
            logger.debug(
                f"Live query {watcher.query.value} released "
                f"({len(self._watchers)} active)"
            )

    async def _fetch(self, query: StoreQuery) -> list[TaskEntity]:
        """
        Run a live query once.

        Raises:
            DatabaseError: If the query fails
        """
        async with self._get_connection() as conn:
            try:
                cursor = await conn.execute(_QUERIES[query])
                rows = await cursor.fetchall()
            except aiosqlite.Error as e:
                raise DatabaseError(f"Failed to query tasks: {e}") from e

        return [self._row_to_entity(row) for row in rows]

    async def _dispatch_changes(self) -> None:
        """Re-run every observed query and send snapshots that changed."""
        results: dict[StoreQuery, list[TaskEntity]] = {}

        for watcher in list(self._watchers):
            if watcher.query not in results:
                try:
                    results[watcher.query] = await self._fetch(watcher.query)
                except DatabaseError as e:
                    # The write is already committed; subscribers catch up next time
                    logger.error(
                        f"Failed to refresh live query {watcher.query.value}: {e}"
                    )
                    continue
            snapshot = results[watcher.query]

            # Cancelled while the query was running
            if watcher not in self._watchers:
                continue
            if snapshot == watcher.last_snapshot:
                continue

            watcher.last_snapshot = snapshot
            self._deliver(watcher, snapshot)

    def _deliver(self, watcher: _Watcher, snapshot: list[TaskEntity]) -> None:
        logger.trace(  # type: ignore[attr-defined]
            f"Live query {watcher.query.value} emitting {len(snapshot)} tasks"
        )
        try:
            watcher.listener(list(snapshot))
        except Exception as e:
            logger.error(f"Error in live query listener: {e}")

    @staticmethod
    def _entity_values(
        record: TaskEntity,
    ) -> tuple[str, str, str, int | None, int, int]:
        """Column values in insert order, without the id."""
        return (
            record.title,
            record.description,
            record.priority,
            record.due_date,
            int(record.is_completed),
            record.created_at,
        )

    def _row_to_entity(self, row: aiosqlite.Row) -> TaskEntity:
        """
        Convert database row to a task record.

        Args:
            row: Database row

        Returns:
            Task record
        """
        return TaskEntity(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            priority=row["priority"],
            due_date=row["dueDate"],
            is_completed=bool(row["isCompleted"]),
            created_at=row["createdAt"],
        )
