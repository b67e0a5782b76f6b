"""Task reference model."""

from pydantic import BaseModel, ConfigDict, Field


TASK_KEY_PATTERN = r"[A-Z]+-[0-9]+"


class Reference(BaseModel):
    """A task key referenced from commit or pull request text.

    Attributes:
        task_key: Task key such as "PROJ-12".
        is_closing: True when a closing keyword directly precedes the key.
    """

    model_config = ConfigDict(frozen=True)

    task_key: str = Field(
        ...,
        pattern=f"^{TASK_KEY_PATTERN}$",
        description="Task key in UPPERCASE-LETTERS-DIGITS form",
    )

    is_closing: bool = Field(
        default=False,
        description="Whether the reference asks for the task to be completed",
    )
