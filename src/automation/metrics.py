"""Prometheus metrics for webhook automation.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- webhook_deliveries_total: Counter of deliveries by event type and outcome
- webhook_references_total: Counter of extracted task references
- webhook_task_mutations_total: Counter of per-reference mutation results
- webhook_processing_duration_seconds: Histogram of routing time
"""

from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


# Webhook processing is request-scoped; buckets cover 5ms to 10s
DEFAULT_DURATION_BUCKETS = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)


class DeliveryOutcome:
    """Label values for webhook_deliveries_total."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    INVALID_SIGNATURE = "invalid_signature"
    MISSING_EVENT = "missing_event"
    ERROR = "error"


class WebhookMetrics:
    """Container for all webhook Prometheus metrics.

    Supports custom registries so tests do not collide on the default one.

    Example:
        >>> metrics = WebhookMetrics(registry=CollectorRegistry())
        >>> metrics.record_delivery("push", DeliveryOutcome.PROCESSED)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize webhook metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY.
        """
        self.registry = registry or REGISTRY

        self.deliveries_total = Counter(
            "webhook_deliveries_total",
            "Total number of GitHub webhook deliveries received",
            labelnames=["event_type", "outcome"],
            registry=self.registry,
        )

        self.references_total = Counter(
            "webhook_references_total",
            "Total number of task references extracted from commits and PRs",
            labelnames=["closing"],
            registry=self.registry,
        )

        self.task_mutations_total = Counter(
            "webhook_task_mutations_total",
            "Total number of task mutations by result",
            labelnames=["result"],
            registry=self.registry,
        )

        self.processing_duration_seconds = Histogram(
            "webhook_processing_duration_seconds",
            "Time spent routing and applying a webhook delivery in seconds",
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_delivery(self, event_type: str, outcome: str) -> None:
        self.deliveries_total.labels(
            event_type=event_type or "unknown",
            outcome=outcome,
        ).inc()

    def record_reference(self, is_closing: bool) -> None:
        self.references_total.labels(
            closing="true" if is_closing else "false",
        ).inc()

    def record_mutation(self, result: str) -> None:
        self.task_mutations_total.labels(result=result).inc()

    def record_processing_duration(self, duration_seconds: float) -> None:
        self.processing_duration_seconds.observe(duration_seconds)


_default_metrics: Optional[WebhookMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> WebhookMetrics:
    """Get or create the webhook metrics instance.

    Args:
        registry: Optional Prometheus registry. If None, returns the
                  global metrics instance for the default registry.

    Returns:
        WebhookMetrics: The metrics instance.
    """
    global _default_metrics

    if registry is not None:
        return WebhookMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = WebhookMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus metrics output for the /metrics endpoint."""
    return generate_latest(registry or REGISTRY)
