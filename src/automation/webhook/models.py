"""GitHub webhook event models for task automation.

This module defines the data models extracted from GitHub webhook payloads
and the structured results produced while processing them:
- WebhookEventType: Event types the router knows about
- CommitInfo / PushEvent: Parsed ``push`` payload
- PullRequestEvent: Parsed ``pull_request`` payload
- ProcessingOutcome: Summary of what a delivery caused

GitHub Webhook Payload Structure (push event, abridged):
{
  "commits": [{"id": "abcdef1234567...", "message": "closes PROJ-1 ..."}],
  "repository": {"full_name": "owner/repo"}
}

GitHub Webhook Payload Structure (pull_request event, abridged):
{
  "action": "closed",
  "pull_request": {"number": 7, "title": "...", "body": "...", "merged": true},
  "repository": {"full_name": "owner/repo"}
}
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


UNKNOWN_REPOSITORY = "unknown"


class WebhookEventType(str, Enum):
    """GitHub event types handled by the router.

    Any other value of the X-GitHub-Event header is accepted and ignored.

    Attributes:
        PING: Sent when a webhook is created. Acknowledged only.
        PUSH: One or more commits were pushed.
        PULL_REQUEST: Pull request activity (only merges are acted on).
    """

    PING = "ping"
    PUSH = "push"
    PULL_REQUEST = "pull_request"


class CommitInfo(BaseModel):
    """A single commit from a push payload."""

    id: str = Field(..., min_length=1, description="Full commit SHA")

    message: str = Field(..., min_length=1, description="Commit message")


class PushEvent(BaseModel):
    """Parsed ``push`` webhook event.

    Attributes:
        repository: Full repository name ("owner/repo").
        commits: Commits in push order. Commits without an id or message
                 are dropped during parsing.
    """

    repository: str = Field(default=UNKNOWN_REPOSITORY)

    commits: List[CommitInfo] = Field(default_factory=list)


class PullRequestEvent(BaseModel):
    """Parsed ``pull_request`` webhook event.

    Attributes:
        action: The pull request action ("opened", "closed", ...).
        number: The pull request number.
        title: Pull request title.
        body: Pull request description. May be empty.
        merged: Whether the pull request was merged.
        repository: Full repository name ("owner/repo").
    """

    action: str

    number: int

    title: str = ""

    body: str = ""

    merged: bool = False

    repository: str = Field(default=UNKNOWN_REPOSITORY)

    @property
    def is_merge(self) -> bool:
        """True when the event is the closing of a merged pull request."""
        return self.action == "closed" and self.merged

    @property
    def text(self) -> str:
        """Title and body joined for reference extraction."""
        return f"{self.title} {self.body}"


class ProcessingOutcome(BaseModel):
    """Summary of the work a delivery caused.

    Attributes:
        event_type: The X-GitHub-Event value that was routed.
        handled: False when the event type or action was ignored.
        pong: True for ``ping`` events.
        references: Number of references extracted.
        tasks_linked: References that produced a comment.
        tasks_completed: References that moved a task to its terminal column.
        failures: References whose store calls failed.
    """

    event_type: str

    handled: bool = False

    pong: bool = False

    references: int = 0

    tasks_linked: int = 0

    tasks_completed: int = 0

    failures: int = 0
