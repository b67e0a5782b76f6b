"""Pytest configuration and shared fixtures.

The ``board`` fixture is an InMemoryTaskStore seeded with one project:
- project "proj-1" with columns "col-todo", "col-progress" and the terminal
  column "col-done" (is_default=True)
- tasks PROJ-1, PROJ-5, PROJ-9 and PROJ-10 in "col-todo", with ids
  "task-<KEY>", all created by "user-sarah"
- project "proj-2" with no terminal column and task OPS-1 ("task-OPS-1")
"""

import pytest

from src.automation.tasks import Column, InMemoryTaskStore, Task, TaskStatus


CREATOR_ID = "user-sarah"


def _seed_board() -> InMemoryTaskStore:
    store = InMemoryTaskStore()

    store.add_column(Column(id="col-todo", project_id="proj-1", name="To Do"))
    store.add_column(Column(id="col-progress", project_id="proj-1", name="In Progress"))
    store.add_column(
        Column(id="col-done", project_id="proj-1", name="Done", is_default=True)
    )
    store.add_column(Column(id="col-ops-todo", project_id="proj-2", name="Backlog"))

    for key in ("PROJ-1", "PROJ-5", "PROJ-9", "PROJ-10"):
        store.add_task(
            Task(
                id=f"task-{key}",
                key=key,
                project_id="proj-1",
                column_id="col-todo",
                creator_id=CREATOR_ID,
                status=TaskStatus.TODO,
            )
        )

    store.add_task(
        Task(
            id="task-OPS-1",
            key="OPS-1",
            project_id="proj-2",
            column_id="col-ops-todo",
            creator_id=CREATOR_ID,
            status=TaskStatus.IN_PROGRESS,
        )
    )
    return store


@pytest.fixture
def board() -> InMemoryTaskStore:
    """A freshly seeded in-memory task board."""
    return _seed_board()
