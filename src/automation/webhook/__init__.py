"""GitHub webhook handling for task automation.

This module authenticates, deduplicates and routes GitHub webhook
deliveries:
- push - Commit messages are scanned for task references
- pull_request - Merged pull requests complete the tasks they reference
- ping - Acknowledged only

Signatures are verified in-process against the raw request body using the
shared webhook secret.
"""

from .dedup import DeliveryCache, DeliveryDeduplicator, InMemoryDeliveryCache
from .handler import EventRouter, decode_body, normalize_payload
from .models import (
    CommitInfo,
    ProcessingOutcome,
    PullRequestEvent,
    PushEvent,
    WebhookEventType,
)
from .signature import compute_signature, verify_signature

__all__ = [
    "CommitInfo",
    "DeliveryCache",
    "DeliveryDeduplicator",
    "EventRouter",
    "InMemoryDeliveryCache",
    "ProcessingOutcome",
    "PullRequestEvent",
    "PushEvent",
    "WebhookEventType",
    "compute_signature",
    "decode_body",
    "normalize_payload",
    "verify_signature",
]
