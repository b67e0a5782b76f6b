"""Task store interface used by the webhook automation.

The automation never talks to the database directly. It depends on the
TaskStore protocol, which the PostgreSQL repository (repository.py) and the
in-memory store below both implement. The in-memory store backs local
development when no database is configured and is used throughout the tests.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional, Protocol, runtime_checkable

from src.automation.tasks.models import Column, Comment, Task, TaskStatus


class TaskStoreError(Exception):
    """Raised when a task store operation fails.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.original_error = original_error
        super().__init__(message)


@runtime_checkable
class TaskStore(Protocol):
    """Protocol defining the persistence operations the automation needs."""

    async def find_task_by_key(self, key: str) -> Optional[Task]:
        """Get a task by its key.

        Args:
            key: Task key such as "PROJ-12".

        Returns:
            The task if found, None otherwise.
        """
        ...

    async def find_default_column(self, project_id: str) -> Optional[Column]:
        """Get the project's terminal column (the one with is_default set).

        Args:
            project_id: The project to look in.

        Returns:
            The terminal column, or None if the project has none.
        """
        ...

    async def create_comment(
        self,
        task_id: str,
        author_id: str,
        content: str,
    ) -> Comment:
        """Append a comment to a task.

        Returns:
            The created comment.
        """
        ...

    async def complete_task(
        self,
        task_id: str,
        column_id: str,
        completed_at: datetime,
    ) -> bool:
        """Move a task to a column and mark it DONE.

        The update only applies when the task is not already in the column,
        so repeated or concurrent completions stamp completed_at once.

        Returns:
            True if the task was updated, False if it was already there.
        """
        ...


class InMemoryTaskStore:
    """Dictionary-backed TaskStore.

    Coroutines never suspend, so each call is atomic on the event loop.
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, Task] = {}
        self._columns: Dict[str, Column] = {}
        self._comments: List[Comment] = []

    def add_task(self, task: Task) -> Task:
        self._tasks[task.id] = task
        return task

    def add_column(self, column: Column) -> Column:
        self._columns[column.id] = column
        return column

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def comments_for(self, task_id: str) -> List[Comment]:
        return [c for c in self._comments if c.task_id == task_id]

    @property
    def comments(self) -> List[Comment]:
        return list(self._comments)

    async def find_task_by_key(self, key: str) -> Optional[Task]:
        for task in self._tasks.values():
            if task.key == key:
                return task
        return None

    async def find_default_column(self, project_id: str) -> Optional[Column]:
        for column in self._columns.values():
            if column.project_id == project_id and column.is_default:
                return column
        return None

    async def create_comment(
        self,
        task_id: str,
        author_id: str,
        content: str,
    ) -> Comment:
        if task_id not in self._tasks:
            raise TaskStoreError(f"Task not found: {task_id}")
        comment = Comment(
            id=uuid.uuid4().hex,
            task_id=task_id,
            author_id=author_id,
            content=content,
        )
        self._comments.append(comment)
        return comment

    async def complete_task(
        self,
        task_id: str,
        column_id: str,
        completed_at: datetime,
    ) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskStoreError(f"Task not found: {task_id}")
        if task.column_id == column_id:
            return False
        self._tasks[task_id] = task.model_copy(
            update={
                "column_id": column_id,
                "status": TaskStatus.DONE,
                "completed_at": completed_at,
            }
        )
        return True
