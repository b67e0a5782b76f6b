"""Task board persistence and the mutations driven by GitHub activity.

The automation reads tasks by key, appends activity comments, and moves
tasks to their project's terminal column. Persistence sits behind the
TaskStore protocol with PostgreSQL and in-memory implementations.
"""

from src.automation.tasks.models import Column, Comment, Task, TaskStatus
from src.automation.tasks.mutator import (
    CommitLink,
    LinkContext,
    MutationResult,
    PullRequestLink,
    TaskMutator,
)
from src.automation.tasks.repository import PostgresTaskStore
from src.automation.tasks.store import InMemoryTaskStore, TaskStore, TaskStoreError

__all__ = [
    # Models
    "Column",
    "Comment",
    "Task",
    "TaskStatus",
    # Store
    "InMemoryTaskStore",
    "PostgresTaskStore",
    "TaskStore",
    "TaskStoreError",
    # Mutator
    "CommitLink",
    "LinkContext",
    "MutationResult",
    "PullRequestLink",
    "TaskMutator",
]
