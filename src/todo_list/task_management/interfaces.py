"""Abstract interfaces for task management system."""

from abc import ABC, abstractmethod
from enum import Enum

from todo_list.task_management.live_query import LiveQuery
from todo_list.task_management.models import TaskEntity


class StoreQuery(str, Enum):
    """Live queries a task store can serve natively."""

    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"
    BY_DUE_DATE = "by_due_date"
    BY_PRIORITY = "by_priority"


class TaskStore(ABC):
    """Abstract interface for durable task record storage."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Open the store and create the schema if needed.

        Raises:
            DatabaseError: If the store cannot be opened
            SchemaError: If the schema cannot be created
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the store and drop all live subscriptions."""
        pass

    @abstractmethod
    async def insert(self, record: TaskEntity) -> int:
        """
        Insert a task record.

        A record with id 0 receives a new identifier. A non-zero id is stored
        as given, replacing any existing record with that id.

        Args:
            record: Record to insert

        Returns:
            Identifier of the stored record

        Raises:
            DatabaseError: If the write fails
        """
        pass

    @abstractmethod
    async def update(self, record: TaskEntity) -> None:
        """
        Overwrite the stored record with the same id.

        Creation time is never rewritten. Updating a record that does not exist
        is a no-op.

        Raises:
            DatabaseError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, record: TaskEntity) -> None:
        """
        Delete the stored record with the same id; no-op if absent.

        Raises:
            DatabaseError: If the write fails
        """
        pass

    @abstractmethod
    async def get_by_id(self, task_id: int) -> TaskEntity | None:
        """
        Look up a record by id.

        Returns:
            The record, or None if no record has that id
        """
        pass

    @abstractmethod
    async def set_completed(self, task_id: int, completed: bool) -> None:
        """
        Update only the completion flag of a record; no-op if absent.

        Raises:
            DatabaseError: If the write fails
        """
        pass

    @abstractmethod
    def observe(self, query: StoreQuery) -> LiveQuery[TaskEntity]:
        """
        Build a live query over the stored records.

        Subscribers get the current matching records immediately and a new
        snapshot after every committed write that changes the result.

        Args:
            query: Which records to return, and in which order

        Returns:
            Cold live query; subscribing starts observation
        """
        pass
