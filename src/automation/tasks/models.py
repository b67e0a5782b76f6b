"""Task board entities read and written by the automation.

These mirror the board's relational model. The automation only reads tasks
by key, looks up a project's terminal column, appends comments, and moves
tasks to the terminal column.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Workflow status of a task.

    Attributes:
        TODO: Not started.
        IN_PROGRESS: Being worked on.
        DONE: Completed; the task sits in its project's terminal column.
    """

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class Column(BaseModel):
    """A board column.

    Attributes:
        id: Column identifier.
        project_id: Owning project.
        name: Display name. Never used to detect the terminal column.
        is_default: True for the project's terminal ("done") column.
    """

    id: str

    project_id: str

    name: str = ""

    is_default: bool = False


class Task(BaseModel):
    """A task on a project board.

    Attributes:
        id: Task identifier.
        key: Human-facing key such as "PROJ-12". Unique across projects.
        project_id: Owning project.
        column_id: Column the task currently sits in.
        creator_id: User who created the task; automated comments are
                    authored as this user.
        status: Workflow status.
        completed_at: When the task was completed, if it was.
    """

    id: str

    key: str

    project_id: str

    column_id: str

    creator_id: str

    status: TaskStatus = TaskStatus.TODO

    completed_at: Optional[datetime] = None


class Comment(BaseModel):
    """An activity comment attached to a task."""

    id: str

    task_id: str

    author_id: str

    content: str

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
