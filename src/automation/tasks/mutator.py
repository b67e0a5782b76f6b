"""Applies task references to the board.

For each reference the mutator:
1. Looks the task up by key; unknown keys are skipped.
2. Appends an activity comment authored as the task's creator.
3. For closing references (and every reference from a merged pull request)
   moves the task to its project's terminal column, marks it DONE and stamps
   completed_at, unless it is already there.

The steps run sequentially so the comment always exists before the column
transition. Failures are contained per reference: apply() logs and returns
MutationResult.FAILED instead of raising, so sibling references in the same
delivery are still processed.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from pydantic import BaseModel

from src.automation.metrics import WebhookMetrics
from src.automation.references import Reference
from src.automation.tasks.store import TaskStore


logger = logging.getLogger(__name__)


SHORT_SHA_LENGTH = 7


class MutationResult(str, Enum):
    """What applying one reference did.

    Attributes:
        NOT_FOUND: No task has the referenced key.
        LINKED: A comment was added; the task was not moved.
        COMPLETED: A comment was added and the task moved to its terminal column.
        FAILED: A store call raised; see the logs.
    """

    NOT_FOUND = "not_found"
    LINKED = "linked"
    COMPLETED = "completed"
    FAILED = "failed"


class CommitLink(BaseModel):
    """A commit that referenced a task."""

    commit_id: str

    message: str

    repository: str

    closes_tasks: bool = False

    @property
    def short_id(self) -> str:
        return self.commit_id[:SHORT_SHA_LENGTH]

    def comment_text(self) -> str:
        return (
            f"🔗 **Commit linked:** {self.message}\n\n"
            f"Commit: `{self.short_id}`\n"
            f"Repository: {self.repository}"
        )


class PullRequestLink(BaseModel):
    """A merged pull request that referenced a task.

    A merge completes every task it references, whether or not a closing
    keyword was used.
    """

    number: int

    repository: str

    closes_tasks: bool = True

    def comment_text(self) -> str:
        return (
            f"🎉 **Pull Request merged!**\n\n"
            f"PR #{self.number} was merged in {self.repository}."
        )


LinkContext = Union[CommitLink, PullRequestLink]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskMutator:
    """Applies references to tasks through a TaskStore.

    Attributes:
        task_store: Persistence used for lookups and updates.
    """

    def __init__(
        self,
        task_store: TaskStore,
        metrics: Optional[WebhookMetrics] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the mutator.

        Args:
            task_store: The store to read and update tasks through.
            metrics: Optional metrics to record results on.
            clock: Source of completion timestamps, injectable for tests.
        """
        self.task_store = task_store
        self._metrics = metrics
        self._clock = clock

    async def apply(self, reference: Reference, link: LinkContext) -> MutationResult:
        """Apply one reference. Never raises.

        Args:
            reference: The extracted task reference.
            link: The commit or pull request the reference came from.

        Returns:
            The MutationResult describing what happened.
        """
        try:
            result = await self._apply(reference, link)
        except Exception as e:
            logger.exception(
                "Failed to update task %s: %s",
                reference.task_key,
                e,
                extra={
                    "task_key": reference.task_key,
                    "repository": link.repository,
                },
            )
            result = MutationResult.FAILED

        if self._metrics is not None:
            self._metrics.record_mutation(result.value)
        return result

    async def _apply(self, reference: Reference, link: LinkContext) -> MutationResult:
        task = await self.task_store.find_task_by_key(reference.task_key)
        if task is None:
            logger.debug("No task for reference %s", reference.task_key)
            return MutationResult.NOT_FOUND

        await self.task_store.create_comment(
            task_id=task.id,
            author_id=task.creator_id,
            content=link.comment_text(),
        )
        logger.info(
            "Linked %s to task %s",
            _describe(link),
            task.key,
            extra={"task_key": task.key, "repository": link.repository},
        )

        if not (reference.is_closing or link.closes_tasks):
            return MutationResult.LINKED

        done_column = await self.task_store.find_default_column(task.project_id)
        if done_column is None:
            logger.warning(
                "Project %s has no terminal column; task %s left in place",
                task.project_id,
                task.key,
                extra={"task_key": task.key, "project_id": task.project_id},
            )
            return MutationResult.LINKED

        if task.column_id == done_column.id:
            return MutationResult.LINKED

        moved = await self.task_store.complete_task(
            task_id=task.id,
            column_id=done_column.id,
            completed_at=self._clock(),
        )
        if not moved:
            return MutationResult.LINKED

        logger.info(
            "Task %s moved to %s due to %s",
            task.key,
            done_column.name or done_column.id,
            _describe(link),
            extra={"task_key": task.key, "column_id": done_column.id},
        )
        return MutationResult.COMPLETED


def _describe(link: LinkContext) -> str:
    if isinstance(link, CommitLink):
        return f"commit {link.short_id}"
    return f"PR #{link.number}"
