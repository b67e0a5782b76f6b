"""End-to-end tests for the webhook HTTP surface.

Requests go through FastAPI's TestClient into a real EventRouter and
TaskMutator backed by the seeded in-memory board.
"""

import json
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry

from src.automation.config import AutomationSettings
from src.automation.main import create_app
from src.automation.tasks import TaskStatus, TaskStoreError
from src.automation.webhook.dedup import InMemoryDeliveryCache
from src.automation.webhook.signature import compute_signature


SECRET = "s3cret"
WEBHOOK_PATH = "/api/github/webhook"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


def _build_client(board, clock, registry, secret=SECRET) -> TestClient:
    app = create_app(
        settings=AutomationSettings(github_webhook_secret=secret),
        task_store=board,
        delivery_cache=InMemoryDeliveryCache(retention_seconds=600, clock=clock),
        registry=registry,
    )
    return TestClient(app)


@pytest.fixture
def client(board, clock, registry) -> TestClient:
    return _build_client(board, clock, registry)


_delivery_counter = iter(range(1, 1_000_000))


def _send(
    client: TestClient,
    event: str,
    payload,
    delivery_id=None,
    secret=SECRET,
    signature_header="X-Hub-Signature-256",
    algorithm="sha256",
    form=False,
    signature=None,
    include_delivery=True,
    extra_headers=None,
):
    if form:
        body = urlencode({"payload": json.dumps(payload)}).encode()
        content_type = "application/x-www-form-urlencoded"
    else:
        body = json.dumps(payload).encode()
        content_type = "application/json"

    headers = {"X-GitHub-Event": event, "Content-Type": content_type}
    if include_delivery:
        headers["X-GitHub-Delivery"] = delivery_id or f"delivery-{next(_delivery_counter)}"
    if signature is None:
        signature = compute_signature(body, secret, algorithm)
    if signature:
        headers[signature_header] = signature
    if extra_headers:
        headers.update(extra_headers)

    return client.post(WEBHOOK_PATH, content=body, headers=headers)


def _push(message: str, commit_id: str = "abcdef1234567"):
    return {
        "ref": "refs/heads/main",
        "commits": [{"id": commit_id, "message": message}],
        "repository": {"full_name": "acme/widgets"},
    }


def _pull_request(title: str, merged: bool = True, action: str = "closed"):
    return {
        "action": action,
        "number": 42,
        "pull_request": {"number": 42, "title": title, "body": None, "merged": merged},
        "repository": {"full_name": "acme/widgets"},
    }


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


def test_missing_event_header_is_rejected(client, registry):
    body = b"{}"
    response = client.post(
        WEBHOOK_PATH,
        content=body,
        headers={"X-Hub-Signature-256": compute_signature(body, SECRET)},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Missing X-GitHub-Event header"}
    assert registry.get_sample_value(
        "webhook_deliveries_total",
        {"event_type": "unknown", "outcome": "missing_event"},
    ) == 1.0


def test_bad_signature_is_rejected(client, board):
    response = _send(client, "push", _push("fixes PROJ-1"), secret="wrong")

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid signature"}
    assert board.comments == []
    assert board.get_task("task-PROJ-1").status == TaskStatus.TODO


def test_missing_signature_is_rejected(client, board):
    response = _send(client, "push", _push("fixes PROJ-1"), signature="")

    assert response.status_code == 401
    assert board.comments == []


def test_unconfigured_secret_rejects_everything(board, clock, registry):
    client = _build_client(board, clock, registry, secret="")

    response = _send(client, "ping", {"zen": "hi"}, secret="anything")

    assert response.status_code == 401


def test_sha1_signature_header_is_accepted(client, board):
    response = _send(
        client,
        "push",
        _push("touches PROJ-1"),
        signature_header="X-Hub-Signature",
        algorithm="sha1",
    )

    assert response.status_code == 200
    assert len(board.comments_for("task-PROJ-1")) == 1


def test_sha256_header_takes_precedence_over_sha1(client, board):
    payload = _push("touches PROJ-1")
    body = json.dumps(payload).encode()

    response = _send(
        client,
        "push",
        payload,
        signature="sha256=" + "0" * 64,
        extra_headers={"X-Hub-Signature": compute_signature(body, SECRET, "sha1")},
    )

    assert response.status_code == 401
    assert board.comments == []


def test_repeated_delivery_header_uses_first_value(client, board):
    body = json.dumps(_push("touches PROJ-1")).encode()
    headers = [
        ("X-GitHub-Event", "push"),
        ("X-GitHub-Delivery", "first-guid"),
        ("X-GitHub-Delivery", "second-guid"),
        ("Content-Type", "application/json"),
        ("X-Hub-Signature-256", compute_signature(body, SECRET)),
    ]

    response = client.post(WEBHOOK_PATH, content=body, headers=headers)

    assert response.json() == {"success": True}
    assert _send(client, "push", _push("touches PROJ-1"), delivery_id="first-guid").json() == {
        "success": True,
        "duplicate": True,
    }
    assert _send(client, "push", _push("touches PROJ-1"), delivery_id="second-guid").json() == {
        "success": True,
    }
    assert len(board.comments_for("task-PROJ-1")) == 2


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def test_ping_returns_pong(client, board):
    response = _send(client, "ping", {"zen": "Design for failure.", "hook_id": 1})

    assert response.status_code == 200
    assert response.json() == {"success": True, "pong": True}
    assert board.comments == []


def test_closing_commit_completes_task(client, board):
    response = _send(client, "push", _push("closes PROJ-1 add retry logic"))

    assert response.status_code == 200
    assert response.json() == {"success": True}

    task = board.get_task("task-PROJ-1")
    assert task.column_id == "col-done"
    assert task.status == TaskStatus.DONE
    assert task.completed_at is not None

    [comment] = board.comments_for("task-PROJ-1")
    assert comment.author_id == "user-sarah"
    assert "abcdef1" in comment.content
    assert "acme/widgets" in comment.content


def test_mixed_commit_closes_one_and_mentions_other(client, board):
    _send(client, "push", _push("fix PROJ-9 and mention PROJ-10"))

    assert board.get_task("task-PROJ-9").status == TaskStatus.DONE
    assert board.get_task("task-PROJ-10").status == TaskStatus.TODO
    assert len(board.comments_for("task-PROJ-9")) == 1
    assert len(board.comments_for("task-PROJ-10")) == 1


def test_unknown_task_key_is_still_success(client, board):
    response = _send(client, "push", _push("fixes NOPE-404"))

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert board.comments == []


def test_merged_pull_request_completes_task(client, board):
    response = _send(client, "pull_request", _pull_request("Add PROJ-5 export"))

    assert response.status_code == 200
    task = board.get_task("task-PROJ-5")
    assert task.status == TaskStatus.DONE
    [comment] = board.comments_for("task-PROJ-5")
    assert "PR #42" in comment.content


def test_unmerged_pull_request_is_ignored(client, board):
    response = _send(client, "pull_request", _pull_request("Fixes PROJ-5", merged=False))

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert board.get_task("task-PROJ-5").status == TaskStatus.TODO
    assert board.comments == []


def test_unhandled_event_is_acknowledged(client, board):
    response = _send(client, "issues", {"action": "opened", "issue": {"title": "fixes PROJ-1"}})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert board.comments == []


def test_form_encoded_payload(client, board):
    response = _send(client, "push", _push("resolves PROJ-1"), form=True)

    assert response.status_code == 200
    assert board.get_task("task-PROJ-1").status == TaskStatus.DONE


def test_failed_reference_does_not_block_siblings(client, board, monkeypatch):
    original = board.create_comment

    async def flaky_create_comment(task_id, author_id, content):
        if task_id == "task-PROJ-1":
            raise TaskStoreError("connection reset")
        return await original(task_id, author_id, content)

    monkeypatch.setattr(board, "create_comment", flaky_create_comment)

    response = _send(client, "push", _push("fixes PROJ-1 and fixes PROJ-5"))

    assert response.status_code == 200
    assert board.get_task("task-PROJ-1").status == TaskStatus.TODO
    assert board.get_task("task-PROJ-5").status == TaskStatus.DONE


# ---------------------------------------------------------------------------
# Duplicate deliveries
# ---------------------------------------------------------------------------


def test_duplicate_delivery_is_processed_once(client, board, clock):
    payload = _push("touches PROJ-1")

    first = _send(client, "push", payload, delivery_id="dup-1")
    clock.advance(120)
    second = _send(client, "push", payload, delivery_id="dup-1")

    assert first.json() == {"success": True}
    assert second.status_code == 200
    assert second.json() == {"success": True, "duplicate": True}
    assert len(board.comments_for("task-PROJ-1")) == 1


def test_delivery_is_reprocessed_after_window(client, board, clock):
    payload = _push("touches PROJ-1")

    _send(client, "push", payload, delivery_id="dup-2")
    clock.advance(601)
    response = _send(client, "push", payload, delivery_id="dup-2")

    assert response.json() == {"success": True}
    assert len(board.comments_for("task-PROJ-1")) == 2


def test_delivery_without_id_is_never_duplicate(client, board):
    payload = _push("touches PROJ-1")

    first = _send(client, "push", payload, include_delivery=False)
    second = _send(client, "push", payload, include_delivery=False)

    assert first.json() == {"success": True}
    assert second.json() == {"success": True}
    assert len(board.comments_for("task-PROJ-1")) == 2


def test_retry_after_server_error_is_processed(client, board, monkeypatch):
    router = client.app.state.event_router
    original_route = router.route
    calls = []

    async def fail_once(event_type, raw_body, parsed_body):
        calls.append(event_type)
        if len(calls) == 1:
            raise RuntimeError("store unavailable")
        return await original_route(event_type, raw_body, parsed_body)

    monkeypatch.setattr(router, "route", fail_once)
    payload = _push("closes PROJ-1")

    failed = _send(client, "push", payload, delivery_id="retry-1")
    retried = _send(client, "push", payload, delivery_id="retry-1")

    assert failed.status_code == 500
    assert retried.status_code == 200
    assert retried.json() == {"success": True}
    assert board.get_task("task-PROJ-1").status == TaskStatus.DONE


def test_rejected_signature_does_not_block_genuine_delivery(client, board):
    payload = _push("touches PROJ-1")

    forged = _send(client, "push", payload, delivery_id="guid-1", secret="wrong")
    genuine = _send(client, "push", payload, delivery_id="guid-1")

    assert forged.status_code == 401
    assert genuine.json() == {"success": True}
    assert len(board.comments_for("task-PROJ-1")) == 1


def test_unexpected_error_returns_500(board, registry):
    class ExplodingCache:
        def seen(self, delivery_id: str) -> bool:
            raise RuntimeError("cache offline")

    app = create_app(
        settings=AutomationSettings(github_webhook_secret=SECRET),
        task_store=board,
        delivery_cache=ExplodingCache(),
        registry=registry,
    )

    response = _send(TestClient(app), "push", _push("fixes PROJ-1"))

    assert response.status_code == 500
    assert response.json() == {"error": "Webhook processing failed"}
    assert registry.get_sample_value(
        "webhook_deliveries_total", {"event_type": "push", "outcome": "error"}
    ) == 1.0


# ---------------------------------------------------------------------------
# Status, health and metrics
# ---------------------------------------------------------------------------


def test_status_when_configured(client):
    response = client.get("/api/github/status")

    assert response.status_code == 200
    assert response.json() == {"connected": True, "webhookPath": WEBHOOK_PATH}


def test_status_when_not_configured(board, clock, registry):
    client = _build_client(board, clock, registry, secret="")

    assert client.get("/api/github/status").json() == {
        "connected": False,
        "webhookPath": WEBHOOK_PATH,
    }


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_metrics_endpoint_reports_deliveries(client):
    _send(client, "ping", {"zen": "hi"})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'webhook_deliveries_total{event_type="ping",outcome="processed"} 1.0' in response.text
