"""PostgreSQL task store for the webhook automation.

This module implements the TaskStore protocol using asyncpg for async
PostgreSQL access. It provides:
- Connection pooling for production use
- Key lookup of tasks and terminal column lookup per project
- Comment creation attributed to the task creator
- A conditional completion update that only moves a task once

Expected schema (owned by the board application):

    tasks(id TEXT PRIMARY KEY, key TEXT UNIQUE, project_id TEXT,
          column_id TEXT, creator_id TEXT, status TEXT,
          completed_at TIMESTAMPTZ)
    columns(id TEXT PRIMARY KEY, project_id TEXT, name TEXT,
            is_default BOOLEAN)
    comments(id TEXT PRIMARY KEY, task_id TEXT, author_id TEXT,
             content TEXT, created_at TIMESTAMPTZ)
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import asyncpg

from src.automation.tasks.models import Column, Comment, Task, TaskStatus
from src.automation.tasks.store import TaskStoreError


logger = logging.getLogger(__name__)


class PostgresTaskStore:
    """PostgreSQL implementation of the TaskStore protocol.

    Attributes:
        connection_string: PostgreSQL connection URL.
        min_pool_size: Minimum connections in pool.
        max_pool_size: Maximum connections in pool.

    Example:
        >>> async with PostgresTaskStore("postgresql://...") as store:
        ...     task = await store.find_task_by_key("PROJ-1")
    """

    def __init__(
        self,
        connection_string: str,
        min_pool_size: int = 2,
        max_pool_size: int = 10,
    ):
        self.connection_string = connection_string
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool, raising if not connected.

        Raises:
            TaskStoreError: If the pool is not initialized.
        """
        if self._pool is None:
            raise TaskStoreError(
                "Database pool not initialized. Call connect() first."
            )
        return self._pool

    async def connect(self) -> None:
        """Initialize the connection pool.

        Raises:
            TaskStoreError: If connection fails.
        """
        if self._pool is not None:
            logger.warning("Connection pool already initialized")
            return

        try:
            logger.info(
                "Connecting to PostgreSQL",
                extra={
                    "min_pool_size": self.min_pool_size,
                    "max_pool_size": self.max_pool_size,
                },
            )
            self._pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
            )
            logger.info("PostgreSQL connection pool established")
        except Exception as e:
            logger.error(
                "Failed to connect to PostgreSQL",
                extra={"error": str(e)},
            )
            raise TaskStoreError(
                f"Failed to connect to PostgreSQL: {e}",
                original_error=e,
            ) from e

    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            logger.info("Closing PostgreSQL connection pool")
            await self._pool.close()
            self._pool = None

    async def __aenter__(self) -> "PostgresTaskStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()

    async def find_task_by_key(self, key: str) -> Optional[Task]:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, key, project_id, column_id, creator_id,
                           status, completed_at
                    FROM tasks
                    WHERE key = $1
                    """,
                    key,
                )
            if row is None:
                return None
            return _row_to_task(row)
        except TaskStoreError:
            raise
        except Exception as e:
            raise TaskStoreError(
                f"Failed to look up task {key}: {e}",
                original_error=e,
            ) from e

    async def find_default_column(self, project_id: str) -> Optional[Column]:
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, project_id, name, is_default
                    FROM columns
                    WHERE project_id = $1 AND is_default = TRUE
                    LIMIT 1
                    """,
                    project_id,
                )
            if row is None:
                return None
            return Column(
                id=row["id"],
                project_id=row["project_id"],
                name=row["name"] or "",
                is_default=row["is_default"],
            )
        except TaskStoreError:
            raise
        except Exception as e:
            raise TaskStoreError(
                f"Failed to look up terminal column for project {project_id}: {e}",
                original_error=e,
            ) from e

    async def create_comment(
        self,
        task_id: str,
        author_id: str,
        content: str,
    ) -> Comment:
        comment = Comment(
            id=uuid.uuid4().hex,
            task_id=task_id,
            author_id=author_id,
            content=content,
            created_at=datetime.now(timezone.utc),
        )
        try:
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO comments (id, task_id, author_id, content, created_at)
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    comment.id,
                    comment.task_id,
                    comment.author_id,
                    comment.content,
                    comment.created_at,
                )
        except TaskStoreError:
            raise
        except Exception as e:
            raise TaskStoreError(
                f"Failed to create comment on task {task_id}: {e}",
                original_error=e,
            ) from e

        logger.debug(
            "Created comment",
            extra={"task_id": task_id, "comment_id": comment.id},
        )
        return comment

    async def complete_task(
        self,
        task_id: str,
        column_id: str,
        completed_at: datetime,
    ) -> bool:
        try:
            async with self.pool.acquire() as conn:
                result = await conn.execute(
                    """
                    UPDATE tasks
                    SET column_id = $2,
                        status = $3,
                        completed_at = $4
                    WHERE id = $1
                      AND column_id IS DISTINCT FROM $2
                    """,
                    task_id,
                    column_id,
                    TaskStatus.DONE.value,
                    completed_at,
                )
        except TaskStoreError:
            raise
        except Exception as e:
            raise TaskStoreError(
                f"Failed to complete task {task_id}: {e}",
                original_error=e,
            ) from e

        # asyncpg returns the command tag, e.g. "UPDATE 1"
        updated = result.split()[-1] != "0"
        return updated


def _row_to_task(row: Any) -> Task:
    return Task(
        id=row["id"],
        key=row["key"],
        project_id=row["project_id"],
        column_id=row["column_id"],
        creator_id=row["creator_id"],
        status=TaskStatus(row["status"]),
        completed_at=row["completed_at"],
    )
