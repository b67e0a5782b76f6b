"""GitHub webhook event routing for task automation.

This module turns a verified webhook delivery into task mutations:
- decode_body: Parses the raw body (JSON or form-encoded) into an object
- normalize_payload: Unwraps the ``payload`` form field used by
  ``application/x-www-form-urlencoded`` webhooks
- EventRouter: Dispatches ``ping``, ``push`` and ``pull_request`` events;
  every other event type is accepted and ignored

For ``push`` events each commit message is scanned for task references.
For ``pull_request`` events only merges (action ``closed`` with ``merged``
true) are acted on, using the pull request title and body.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs

from src.automation.metrics import WebhookMetrics
from src.automation.references import extract_references
from src.automation.tasks.mutator import (
    CommitLink,
    LinkContext,
    MutationResult,
    PullRequestLink,
    TaskMutator,
)
from src.automation.webhook.models import (
    UNKNOWN_REPOSITORY,
    CommitInfo,
    ProcessingOutcome,
    PullRequestEvent,
    PushEvent,
    WebhookEventType,
)

logger = logging.getLogger(__name__)


FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def decode_body(raw_body: bytes, content_type: Optional[str] = None) -> Any:
    """Parse a raw webhook body.

    Form-encoded bodies become a dict of first values per field; anything
    else is parsed as JSON. A body that cannot be decoded becomes an empty
    dict so the event is routed with no content.

    Args:
        raw_body: The exact request body bytes.
        content_type: The Content-Type header, if any.

    Returns:
        The decoded body.
    """
    if not raw_body:
        return {}

    try:
        text = raw_body.decode("utf-8")
        if content_type and content_type.split(";")[0].strip().lower() == FORM_CONTENT_TYPE:
            fields = parse_qs(text, keep_blank_values=True)
            return {name: values[0] for name, values in fields.items() if values}
        return json.loads(text)
    except ValueError as e:
        logger.warning("Could not decode webhook body: %s", e)
        return {}


def normalize_payload(parsed_body: Any) -> Any:
    """Unwrap a JSON payload carried in a ``payload`` form field.

    Args:
        parsed_body: The decoded request body.

    Returns:
        The JSON document from the ``payload`` field if present and valid,
        otherwise the body unchanged.
    """
    if not isinstance(parsed_body, dict):
        return parsed_body

    wrapped = parsed_body.get("payload")
    if not isinstance(wrapped, str):
        return parsed_body

    try:
        return json.loads(wrapped)
    except ValueError:
        logger.debug("'payload' field is not JSON; using body as-is")
        return parsed_body


class EventRouter:
    """Routes verified webhook deliveries to event handlers.

    Attributes:
        mutator: Applies each extracted reference to the board.
    """

    def __init__(
        self,
        mutator: TaskMutator,
        metrics: Optional[WebhookMetrics] = None,
    ) -> None:
        """Initialize the router.

        Args:
            mutator: The task mutator references are applied with.
            metrics: Optional metrics to record references and timing on.
        """
        self.mutator = mutator
        self._metrics = metrics

    async def route(
        self,
        event_type: str,
        raw_body: bytes,
        parsed_body: Any,
    ) -> ProcessingOutcome:
        """Dispatch a delivery by its X-GitHub-Event type.

        Args:
            event_type: Value of the X-GitHub-Event header.
            raw_body: The raw request body (already verified).
            parsed_body: The decoded request body.

        Returns:
            A ProcessingOutcome describing what the delivery caused.
        """
        started = time.perf_counter()
        payload = normalize_payload(parsed_body)
        outcome = ProcessingOutcome(event_type=event_type)

        logger.debug(
            "Routing webhook event %s",
            event_type,
            extra={"event_type": event_type, "payload_bytes": len(raw_body)},
        )

        if event_type == WebhookEventType.PING.value:
            outcome.handled = True
            outcome.pong = True
        elif event_type == WebhookEventType.PUSH.value:
            push = self.parse_push_event(payload)
            if push is not None:
                await self._handle_push(push, outcome)
        elif event_type == WebhookEventType.PULL_REQUEST.value:
            pull_request = self.parse_pull_request_event(payload)
            if pull_request is not None:
                await self._handle_pull_request(pull_request, outcome)
        else:
            logger.debug("Ignoring unhandled GitHub event: %s", event_type)

        if self._metrics is not None:
            self._metrics.record_processing_duration(time.perf_counter() - started)
        return outcome

    def parse_push_event(self, payload: Any) -> Optional[PushEvent]:
        """Parse a ``push`` payload.

        Commits missing a non-empty id or message are skipped.

        Args:
            payload: The normalized webhook payload.

        Returns:
            PushEvent if the payload is an object, None otherwise.
        """
        if not isinstance(payload, dict):
            logger.warning("Invalid push payload: expected dict, got %s", type(payload))
            return None

        commits_data = payload.get("commits")
        if commits_data is None:
            commits_data = []
        if not isinstance(commits_data, list):
            logger.warning("Invalid 'commits' field in push payload: %s", type(commits_data))
            commits_data = []

        commits: List[CommitInfo] = []
        for commit in commits_data:
            if not isinstance(commit, dict):
                continue
            commit_id = commit.get("id")
            message = commit.get("message")
            if not isinstance(commit_id, str) or not commit_id:
                logger.debug("Skipping commit without id")
                continue
            if not isinstance(message, str) or not message:
                logger.debug("Skipping commit %s without message", commit_id[:7])
                continue
            commits.append(CommitInfo(id=commit_id, message=message))

        return PushEvent(
            repository=self._extract_repository(payload),
            commits=commits,
        )

    def parse_pull_request_event(self, payload: Any) -> Optional[PullRequestEvent]:
        """Parse a ``pull_request`` payload.

        Args:
            payload: The normalized webhook payload.

        Returns:
            PullRequestEvent if parsing succeeds, None otherwise.
            Returns None for:
            - Missing action or pull_request object
            - Missing or non-integer pull request number
        """
        if not isinstance(payload, dict):
            logger.warning(
                "Invalid pull_request payload: expected dict, got %s", type(payload)
            )
            return None

        action = payload.get("action")
        if not isinstance(action, str) or not action:
            logger.warning("Missing 'action' field in pull_request payload")
            return None

        pr_data = payload.get("pull_request")
        if not isinstance(pr_data, dict):
            logger.warning(
                "Missing or invalid 'pull_request' field in payload: %s",
                type(pr_data),
            )
            return None

        number = pr_data.get("number")
        if not isinstance(number, int) or isinstance(number, bool):
            logger.warning("Invalid pull request number: %s", number)
            return None

        title = pr_data.get("title")
        body = pr_data.get("body")

        return PullRequestEvent(
            action=action,
            number=number,
            title=title if isinstance(title, str) else "",
            body=body if isinstance(body, str) else "",
            merged=pr_data.get("merged") is True,
            repository=self._extract_repository(payload),
        )

    async def _handle_push(self, push: PushEvent, outcome: ProcessingOutcome) -> None:
        outcome.handled = True
        for commit in push.commits:
            link = CommitLink(
                commit_id=commit.id,
                message=commit.message,
                repository=push.repository,
            )
            await self._apply_references(commit.message, link, outcome)

    async def _handle_pull_request(
        self,
        pull_request: PullRequestEvent,
        outcome: ProcessingOutcome,
    ) -> None:
        if not pull_request.is_merge:
            logger.debug(
                "Ignoring pull_request action=%s merged=%s for PR #%s",
                pull_request.action,
                pull_request.merged,
                pull_request.number,
            )
            return

        outcome.handled = True
        link = PullRequestLink(
            number=pull_request.number,
            repository=pull_request.repository,
        )
        await self._apply_references(pull_request.text, link, outcome)

    async def _apply_references(
        self,
        text: str,
        link: LinkContext,
        outcome: ProcessingOutcome,
    ) -> None:
        for reference in extract_references(text):
            outcome.references += 1
            if self._metrics is not None:
                self._metrics.record_reference(reference.is_closing)

            result = await self.mutator.apply(reference, link)
            if result in (MutationResult.LINKED, MutationResult.COMPLETED):
                outcome.tasks_linked += 1
            if result == MutationResult.COMPLETED:
                outcome.tasks_completed += 1
            elif result == MutationResult.FAILED:
                outcome.failures += 1

    def _extract_repository(self, payload: Dict[str, Any]) -> str:
        repo_data = payload.get("repository")
        if isinstance(repo_data, dict):
            full_name = repo_data.get("full_name")
            if isinstance(full_name, str) and full_name.strip():
                return full_name.strip()
        logger.debug("Missing repository.full_name in payload")
        return UNKNOWN_REPOSITORY
