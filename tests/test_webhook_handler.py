"""Tests for webhook dispatch and the webhook HTTP server."""

import hashlib
import hmac
import json
from unittest.mock import Mock

import pytest
from aiohttp import test_utils

from statusbot.github.client import GitHubAPIError
from statusbot.github.webhook_handler import (
    HEADER_EVENT,
    HEADER_SIGNATURE,
    WebhookHandler,
    WebhookParseError,
    WebhookServer,
    WebhookValidationError,
    create_webhook_handler,
    create_webhook_server,
)
from statusbot.issues.listener import StatusListener
from statusbot.issues.status import Status
from statusbot.issues.status_api import InMemoryStatusApi


SECRET = "s3cret"
REPO = "acme/widgets"


def sign(body: bytes, secret: str = SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def delivery(event: str, payload: dict, secret: str = SECRET):
    body = json.dumps(payload).encode()
    headers = {HEADER_EVENT: event, HEADER_SIGNATURE: sign(body, secret)}
    return headers, body


def comment_payload(body: str, number: int = 42, repo: str = REPO) -> dict:
    return {
        "action": "created",
        "issue": {"number": number},
        "comment": {"body": body, "user": {"login": "octocat"}},
        "repository": {"full_name": repo},
    }


@pytest.fixture
def handler(listener, metrics):
    return WebhookHandler(secret=SECRET, listener=listener, repo=REPO, metrics=metrics)


class TestDispatch:

    @pytest.mark.asyncio
    async def test_comment_sets_status(self, handler, status_api):
        result = await handler.handle_webhook(*delivery("issue_comment", comment_payload("Status: QA approved")))

        assert result["status"] == "processed"
        assert result["issue"] == 42
        assert result["status_change"] == "qa_approved"
        status_api.set_issue_status.assert_called_once_with(42, Status.QA_APPROVED)

    @pytest.mark.asyncio
    async def test_comment_without_declaration(self, handler, status_api):
        result = await handler.handle_webhook(*delivery("issue_comment", comment_payload("Looks good to me")))

        assert result["status"] == "processed"
        assert result["status_change"] is None
        status_api.set_issue_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_edited_comment_ignored(self, handler, status_api):
        payload = comment_payload("Status: needs review")
        payload["action"] = "edited"

        result = await handler.handle_webhook(*delivery("issue_comment", payload))

        assert result["status"] == "ignored"
        status_api.set_issue_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_pull_request_opened(self, handler, status_api):
        payload = {
            "action": "opened",
            "number": 7,
            "pull_request": {"number": 7},
            "repository": {"full_name": REPO},
        }

        result = await handler.handle_webhook(*delivery("pull_request", payload))

        assert result["status_change"] == "needs_review"
        status_api.set_issue_status.assert_called_once_with(7, Status.NEEDS_REVIEW)

    @pytest.mark.asyncio
    async def test_pull_request_closed_ignored(self, handler, status_api):
        payload = {"action": "closed", "pull_request": {"number": 7}, "repository": {"full_name": REPO}}

        result = await handler.handle_webhook(*delivery("pull_request", payload))

        assert result["status"] == "ignored"
        status_api.set_issue_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_bug_label(self, handler, status_api):
        payload = {
            "action": "labeled",
            "issue": {"number": 9},
            "label": {"name": "Bug"},
            "repository": {"full_name": REPO},
        }

        result = await handler.handle_webhook(*delivery("issues", payload))

        assert result["status_change"] == "needs_review"
        status_api.get_issue_status.assert_called_once_with(9)
        status_api.set_issue_status.assert_called_once_with(9, Status.NEEDS_REVIEW)

    @pytest.mark.asyncio
    async def test_other_label(self, handler, status_api):
        payload = {
            "action": "labeled",
            "issue": {"number": 9},
            "label": {"name": "feature"},
            "repository": {"full_name": REPO},
        }

        result = await handler.handle_webhook(*delivery("issues", payload))

        assert result["status"] == "processed"
        assert result["status_change"] is None
        status_api.get_issue_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_ping(self, handler):
        result = await handler.handle_webhook(*delivery("ping", {"zen": "Keep it simple.", "hook_id": 1}))

        assert result["status"] == "processed"
        assert result["outcome"] == "pong"

    @pytest.mark.asyncio
    async def test_unsupported_event(self, handler):
        result = await handler.handle_webhook(*delivery("push", {"ref": "refs/heads/main"}))

        assert result["status"] == "ignored"
        assert "push" in result["reason"]

    @pytest.mark.asyncio
    async def test_other_repository_ignored(self, handler, status_api):
        payload = comment_payload("Status: needs review", repo="someone/else")

        result = await handler.handle_webhook(*delivery("issue_comment", payload))

        assert result["status"] == "ignored"
        status_api.set_issue_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_status_api_failure_reported(self, handler, status_api, metrics):
        status_api.set_issue_status.side_effect = GitHubAPIError("Server Error", 500)

        result = await handler.handle_webhook(*delivery("issue_comment", comment_payload("Status: needs review")))

        assert result["status"] == "error"
        assert "Server Error" in result["error"]
        assert handler.get_stats()["total_errors"] == 1
        assert metrics.get_value(
            "statusbot_errors_total", {"component": "webhook", "error_type": "GitHubAPIError"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_status_api_failure_audited(self, listener, status_api):
        audit = Mock()
        handler = WebhookHandler(secret=SECRET, listener=listener, repo=REPO, audit_logger=audit)
        status_api.set_issue_status.side_effect = GitHubAPIError("Server Error", 500)

        await handler.handle_webhook(*delivery("issue_comment", comment_payload("Status: needs review")))

        audit.log_error.assert_called_once_with(
            "webhook", "GitHubAPIError", "[500] Server Error", issue_number=42,
        )

    @pytest.mark.asyncio
    async def test_success_not_audited_as_error(self, listener):
        audit = Mock()
        handler = WebhookHandler(secret=SECRET, listener=listener, repo=REPO, audit_logger=audit)

        await handler.handle_webhook(*delivery("issue_comment", comment_payload("Status: needs review")))

        audit.log_error.assert_not_called()


class TestValidation:

    @pytest.mark.asyncio
    async def test_bad_signature(self, handler):
        headers, body = delivery("issue_comment", comment_payload("hi"), secret="wrong")

        with pytest.raises(WebhookValidationError):
            await handler.handle_webhook(headers, body)

    @pytest.mark.asyncio
    async def test_missing_signature(self, handler):
        headers, body = delivery("issue_comment", comment_payload("hi"))
        del headers[HEADER_SIGNATURE]

        with pytest.raises(WebhookValidationError):
            await handler.handle_webhook(headers, body)

    @pytest.mark.asyncio
    async def test_no_secret_skips_validation(self, listener):
        handler = WebhookHandler(secret="", listener=listener)
        body = json.dumps(comment_payload("Status: needs review")).encode()

        result = await handler.handle_webhook({HEADER_EVENT: "issue_comment"}, body)

        assert result["status_change"] == "needs_review"

    @pytest.mark.asyncio
    async def test_missing_event_header(self, handler):
        body = b"{}"
        with pytest.raises(WebhookParseError):
            await handler.handle_webhook({HEADER_SIGNATURE: sign(body)}, body)

    @pytest.mark.asyncio
    async def test_invalid_json(self, handler):
        body = b"not json"
        with pytest.raises(WebhookParseError):
            await handler.handle_webhook({HEADER_EVENT: "issues", HEADER_SIGNATURE: sign(body)}, body)


class TestStats:

    @pytest.mark.asyncio
    async def test_counts(self, handler, metrics):
        await handler.handle_webhook(*delivery("issue_comment", comment_payload("Status: needs review")))
        await handler.handle_webhook(*delivery("push", {}))

        stats = handler.get_stats()
        assert stats["total_received"] == 2
        assert stats["total_processed"] == 1
        assert stats["total_ignored"] == 1
        assert stats["status_changes"] == 1
        assert stats["by_event"] == {"issue_comment.created": 1, "push": 1}
        assert metrics.get_value(
            "statusbot_webhooks_received_total", {"event": "push", "action": "none"}
        ) == 1.0

        handler.reset_stats()
        assert handler.get_stats()["total_received"] == 0


class TestServer:

    @pytest.fixture
    def server(self, metrics):
        listener = StatusListener(InMemoryStatusApi())
        handler = WebhookHandler(secret=SECRET, listener=listener, repo=REPO)
        return WebhookServer(handler, path="/hook", metrics=metrics)

    @pytest.mark.asyncio
    async def test_webhook_endpoint(self, server):
        headers, body = delivery("pull_request", {"action": "opened", "pull_request": {"number": 3}})

        async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as client:
            resp = await client.post("/hook", data=body, headers=headers)
            data = await resp.json()

        assert resp.status == 200
        assert data["status_change"] == "needs_review"
        assert server.handler.listener.status_api.get_issue_status(3) is Status.NEEDS_REVIEW

    @pytest.mark.asyncio
    async def test_lowercase_headers(self, server):
        headers, body = delivery("pull_request", {"action": "opened", "pull_request": {"number": 4}})
        headers = {key.lower(): value for key, value in headers.items()}

        async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as client:
            resp = await client.post("/hook", data=body, headers=headers)

        assert resp.status == 200

    @pytest.mark.asyncio
    async def test_invalid_signature_is_401(self, server):
        headers, body = delivery("ping", {}, secret="nope")

        async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as client:
            resp = await client.post("/hook", data=body, headers=headers)

        assert resp.status == 401

    @pytest.mark.asyncio
    async def test_bad_payload_is_400(self, server):
        body = b"[broken"
        headers = {HEADER_EVENT: "issues", HEADER_SIGNATURE: sign(body)}

        async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as client:
            resp = await client.post("/hook", data=body, headers=headers)

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_health_stats_metrics(self, server):
        async with test_utils.TestClient(test_utils.TestServer(server.create_app())) as client:
            health = await client.get("/health")
            health_data = await health.json()
            stats = await client.get("/stats")
            stats_data = await stats.json()
            metrics = await client.get("/metrics")
            metrics_text = await metrics.text()

        assert health.status == 200
        assert health_data["status"] == "healthy"
        assert stats.status == 200
        assert stats_data["stats"]["total_received"] == 0
        assert metrics.status == 200
        assert "statusbot_webhooks_received_total" in metrics_text


def test_factories(listener, metrics):
    config = {
        "github": {"repo": REPO},
        "webhook": {"secret": SECRET, "host": "127.0.0.1", "port": "9000", "path": "/gh"},
    }

    handler = create_webhook_handler(listener, config, metrics=metrics)
    server = create_webhook_server(handler, config["webhook"], metrics=metrics)

    assert handler.secret == SECRET.encode()
    assert handler.repo == REPO
    assert server.port == 9000
    assert server.path == "/gh"


@pytest.mark.asyncio
async def test_factory_numeric_secret(listener):
    config = {"github": {"repo": REPO}, "webhook": {"secret": 123456}}

    handler = create_webhook_handler(listener, config)
    result = await handler.handle_webhook(*delivery("ping", {"hook_id": 1}, secret="123456"))

    assert handler.secret == b"123456"
    assert result["outcome"] == "pong"
