"""FastAPI application entry point for GitHub task automation.

This module wires the webhook pipeline together and exposes it over HTTP:
- POST {prefix}/webhook: GitHub webhook receiver
- GET {prefix}/status: Whether a webhook secret is configured
- GET /health: Liveness probe
- GET /metrics: Prometheus metrics

A delivery is handled in this order: event header check, duplicate check,
signature verification, then routing. All task mutations for a delivery
complete before the response is sent. A delivery answered 401 or 500 is
forgotten by the duplicate check so the sender's retry is processed.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry

from .config import AutomationSettings, get_settings
from .metrics import DeliveryOutcome, WebhookMetrics, generate_metrics_output, get_metrics
from .tasks.mutator import TaskMutator
from .tasks.repository import PostgresTaskStore
from .tasks.store import InMemoryTaskStore, TaskStore
from .webhook.dedup import DeliveryCache, DeliveryDeduplicator, InMemoryDeliveryCache
from .webhook.handler import EventRouter, decode_body
from .webhook.signature import verify_signature

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _redact_secret(value: Optional[str], visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters.
    """
    if not value:
        return "<not set>"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: AutomationSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Automation configuration:")
    logger.info(f"  GitHub Webhook Secret: {_redact_secret(settings.github_webhook_secret)}")
    logger.info(f"  Webhook Path: {settings.webhook_path}")
    logger.info(f"  Delivery Retention Seconds: {settings.delivery_retention_seconds}")
    logger.info(f"  Database URL: {_redact_secret(settings.database_url)}")
    logger.info(f"  Host: {settings.host}")
    logger.info(f"  Port: {settings.port}")


def _create_task_store(settings: AutomationSettings) -> TaskStore:
    """Create the task store for the configured backend.

    Returns a PostgresTaskStore when a database URL is configured, otherwise
    an empty in-memory store for local development.
    """
    if settings.database_url:
        return PostgresTaskStore(
            settings.database_url,
            min_pool_size=settings.db_min_pool_size,
            max_pool_size=settings.db_max_pool_size,
        )
    logger.warning("No database_url configured; using in-memory task store")
    return InMemoryTaskStore()


def _first_header(request: Request, name: str) -> Optional[str]:
    values = request.headers.getlist(name)
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


def create_app(
    settings: Optional[AutomationSettings] = None,
    task_store: Optional[TaskStore] = None,
    delivery_cache: Optional[DeliveryCache] = None,
    registry: Optional[CollectorRegistry] = None,
) -> FastAPI:
    """Build the FastAPI application with its webhook pipeline.

    Args:
        settings: Configuration. Loaded from the environment if omitted.
        task_store: Task persistence. Chosen from settings if omitted.
        delivery_cache: Delivery id cache. An in-memory cache with the
            configured retention window is used if omitted.
        registry: Prometheus registry. The default registry if omitted.

    Returns:
        The configured application.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    metrics: WebhookMetrics = get_metrics(registry)
    store = task_store if task_store is not None else _create_task_store(settings)
    owns_store = task_store is None
    cache = delivery_cache or InMemoryDeliveryCache(
        retention_seconds=settings.delivery_retention_seconds,
    )

    deduplicator = DeliveryDeduplicator(cache)
    event_router = EventRouter(TaskMutator(store, metrics=metrics), metrics=metrics)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect and disconnect the task store around the app's lifetime."""
        logger.info("GitHub automation starting up...")
        _log_configuration(settings)

        if owns_store and isinstance(store, PostgresTaskStore):
            await store.connect()

        logger.info("GitHub automation started successfully")

        yield

        logger.info("GitHub automation shutting down...")
        if owns_store and isinstance(store, PostgresTaskStore):
            await store.disconnect()
        logger.info("GitHub automation shutdown complete")

    app = FastAPI(
        title="Task Board GitHub Automation",
        description="Links commits and pull requests to board tasks via GitHub webhooks",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.task_store = store
    app.state.event_router = event_router
    app.state.deduplicator = deduplicator
    app.state.metrics = metrics

    github = APIRouter(prefix=settings.webhook_route_prefix)

    @github.post("/webhook")
    async def github_webhook(request: Request):
        """GitHub webhook receiver endpoint.

        Returns:
            200 {"success": true} when processed or intentionally ignored,
            with "duplicate" or "pong" flags where they apply.
            400 when X-GitHub-Event is missing, 401 on a bad signature,
            500 on an unexpected error.
        """
        event_type = _first_header(request, "x-github-event")
        if not event_type:
            metrics.record_delivery("", DeliveryOutcome.MISSING_EVENT)
            return JSONResponse(
                status_code=400,
                content={"error": "Missing X-GitHub-Event header"},
            )

        delivery_id = _first_header(request, "x-github-delivery")
        log_context = {"delivery_id": delivery_id, "event_type": event_type}
        recorded = False

        try:
            if deduplicator.is_duplicate(delivery_id):
                metrics.record_delivery(event_type, DeliveryOutcome.DUPLICATE)
                return {"success": True, "duplicate": True}
            recorded = True

            raw_body = await request.body()
            signature = _first_header(request, "x-hub-signature-256") or _first_header(
                request, "x-hub-signature"
            )
            if not verify_signature(raw_body, signature, settings.github_webhook_secret):
                logger.warning("Rejected webhook with invalid signature", extra=log_context)
                deduplicator.release(delivery_id)
                metrics.record_delivery(event_type, DeliveryOutcome.INVALID_SIGNATURE)
                return JSONResponse(status_code=401, content={"error": "Invalid signature"})

            parsed_body = decode_body(raw_body, request.headers.get("content-type"))
            outcome = await event_router.route(event_type, raw_body, parsed_body)
        except Exception as e:
            logger.exception("GitHub webhook error: %s", e, extra=log_context)
            if recorded:
                deduplicator.release(delivery_id)
            metrics.record_delivery(event_type, DeliveryOutcome.ERROR)
            return JSONResponse(
                status_code=500,
                content={"error": "Webhook processing failed"},
            )

        metrics.record_delivery(event_type, DeliveryOutcome.PROCESSED)
        logger.info(
            "Processed webhook %s: %d references, %d linked, %d completed",
            event_type,
            outcome.references,
            outcome.tasks_linked,
            outcome.tasks_completed,
            extra=log_context,
        )

        if outcome.pong:
            return {"success": True, "pong": True}
        return {"success": True}

    @github.get("/status")
    async def github_status():
        """Report whether the webhook integration is configured."""
        return {
            "connected": settings.webhook_configured,
            "webhookPath": settings.webhook_path,
        }

    app.include_router(github)

    @app.get("/health")
    async def health():
        """Liveness probe endpoint."""
        return {"status": "healthy"}

    @app.get("/metrics")
    async def prometheus_metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_metrics_output(metrics.registry),
            media_type=CONTENT_TYPE_LATEST,
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "src.automation.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
        reload=True,
    )
