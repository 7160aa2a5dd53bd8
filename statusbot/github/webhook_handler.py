# =============================================================================
# ISSUE STATUS BOT - WEBHOOK HANDLER
# =============================================================================
"""
GitHub Webhook Handler

Receives GitHub webhooks and hands the relevant ones to the
StatusListener.

Supported Events:
    - issue_comment.created: status declared in the comment
    - pull_request.opened: new pull requests need review
    - issues.labeled: newly labeled bugs need review
    - ping: sent by GitHub when the webhook is configured

Security:
    - Validates webhook signature using HMAC-SHA256
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import (
    Dict,
    Any,
    Optional,
    Callable,
    Awaitable,
    Tuple,
)

from aiohttp import web

from monitoring.logger import log_context
from statusbot.issues.listener import StatusListener


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class WebhookError(Exception):
    """Base exception for webhook errors."""
    pass


class WebhookValidationError(WebhookError):
    """Raised when webhook signature validation fails."""
    pass


class WebhookParseError(WebhookError):
    """Raised when webhook payload cannot be parsed."""
    pass


# =============================================================================
# TYPE DEFINITIONS
# =============================================================================

EventHandler = Callable[[str, Dict[str, Any]], Awaitable[Dict[str, Any]]]


# =============================================================================
# CONSTANTS
# =============================================================================

HEADER_EVENT = "X-GitHub-Event"
HEADER_SIGNATURE = "X-Hub-Signature-256"
HEADER_DELIVERY = "X-GitHub-Delivery"

SUPPORTED_EVENTS = {"issues", "issue_comment", "pull_request", "ping"}


# =============================================================================
# WEBHOOK HANDLER CLASS
# =============================================================================


class WebhookHandler:
    """
    Handles incoming GitHub webhooks.

    This class:
    1. Validates webhook signatures using HMAC-SHA256
    2. Parses event payloads
    3. Calls the matching StatusListener operation

    Attributes:
        secret: Webhook secret for validation
        listener: StatusListener deciding status changes
        repo: Only deliveries for this repository are handled (optional)
        metrics: Optional MetricsCollector
        audit_logger: Optional AuditLogger recording failed deliveries
    """

    def __init__(
        self,
        secret: str,
        listener: StatusListener,
        repo: Optional[str] = None,
        metrics: Any = None,
        audit_logger: Any = None,
    ):
        """
        Initialize webhook handler.

        Args:
            secret: Webhook secret; empty disables signature checks
            listener: StatusListener instance
            repo: Repository (owner/repo) this bot is responsible for
            metrics: Optional MetricsCollector
            audit_logger: Optional AuditLogger
        """
        self.secret = secret.encode("utf-8") if secret else b""
        self.listener = listener
        self.repo = repo
        self.metrics = metrics
        self.audit_logger = audit_logger

        self.stats = self._empty_stats()

        self.event_handlers: Dict[str, EventHandler] = {
            "issues": self._handle_issues_event,
            "issue_comment": self._handle_issue_comment_event,
            "pull_request": self._handle_pull_request_event,
            "ping": self._handle_ping_event,
        }

        logger.info("WebhookHandler initialized")

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            "total_received": 0,
            "total_processed": 0,
            "total_ignored": 0,
            "total_errors": 0,
            "status_changes": 0,
            "by_event": {},
            "last_received": None,
        }

    async def handle_webhook(
        self,
        headers: Dict[str, str],
        body: bytes,
    ) -> Dict[str, Any]:
        """
        Process an incoming webhook.

        Args:
            headers: HTTP headers including X-Hub-Signature-256
            body: Raw request body

        Returns:
            {"status": "processed", ...}, {"status": "ignored", "reason": ...}
            or {"status": "error", ...} when the status API failed

        Raises:
            WebhookValidationError: If signature is invalid
            WebhookParseError: If payload cannot be parsed
        """
        self.stats["total_received"] += 1
        self.stats["last_received"] = datetime.now(timezone.utc).isoformat()

        if self.secret and not self._validate_signature(headers, body):
            self.stats["total_errors"] += 1
            raise WebhookValidationError("Invalid webhook signature")

        event_type, action, payload = self._parse_event(headers, body)

        event_key = f"{event_type}.{action}" if action else event_type
        self.stats["by_event"][event_key] = self.stats["by_event"].get(event_key, 0) + 1
        if self.metrics is not None:
            self.metrics.record_webhook(event_type, action)

        delivery_id = headers.get(HEADER_DELIVERY, "unknown")
        logger.info(f"Webhook received: {event_key} (delivery: {delivery_id})")

        if event_type not in SUPPORTED_EVENTS:
            return self._ignored(f"Unsupported event type: {event_type}")

        repo_name = (payload.get("repository") or {}).get("full_name")
        if self.repo and repo_name and repo_name.lower() != self.repo.lower():
            return self._ignored(f"Repository not handled: {repo_name}")

        handler = self.event_handlers[event_type]

        try:
            with log_context(event=event_key, delivery=delivery_id):
                result = await handler(action, payload)
        except Exception as e:
            self.stats["total_errors"] += 1
            if self.metrics is not None:
                self.metrics.record_error("webhook", type(e).__name__)
            if self.audit_logger is not None:
                self.audit_logger.log_error(
                    "webhook", type(e).__name__, str(e),
                    issue_number=self._issue_number(payload),
                )
            logger.error(f"Error handling webhook {event_key}: {e}", exc_info=True)
            return {
                "status": "error",
                "event": event_type,
                "action": action,
                "error": str(e),
            }

        if result.get("outcome") == "ignored":
            return self._ignored(result.get("reason", ""))

        self.stats["total_processed"] += 1
        if result.get("status_change"):
            self.stats["status_changes"] += 1

        return {
            "status": "processed",
            "event": event_type,
            "action": action,
            **result,
        }

    def _ignored(self, reason: str) -> Dict[str, Any]:
        self.stats["total_ignored"] += 1
        logger.debug(f"Ignoring webhook: {reason}")
        return {"status": "ignored", "reason": reason}

    def _validate_signature(self, headers: Dict[str, str], body: bytes) -> bool:
        """
        Validate webhook signature.

        Uses HMAC-SHA256 with configured secret.
        """
        signature_header = headers.get(HEADER_SIGNATURE, "")

        if not signature_header:
            logger.warning("Missing webhook signature header")
            return False

        if not signature_header.startswith("sha256="):
            logger.warning("Invalid signature format (expected sha256=...)")
            return False

        expected_signature = signature_header[len("sha256="):]

        computed = hmac.new(
            self.secret,
            body,
            hashlib.sha256,
        ).hexdigest()

        return hmac.compare_digest(computed, expected_signature)

    def _parse_event(
        self,
        headers: Dict[str, str],
        body: bytes,
    ) -> Tuple[str, str, Dict[str, Any]]:
        """
        Parse event type and payload.

        Returns:
            (event_type, action, payload)

        Raises:
            WebhookParseError: If parsing fails
        """
        event_type = headers.get(HEADER_EVENT, "").lower()
        if not event_type:
            raise WebhookParseError("Missing X-GitHub-Event header")

        try:
            payload = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise WebhookParseError(f"Invalid JSON payload: {e}")

        if not isinstance(payload, dict):
            raise WebhookParseError("Webhook payload must be a JSON object")

        action = payload.get("action", "")

        return event_type, action, payload

    # =========================================================================
    # EVENT HANDLERS
    # =========================================================================

    async def _handle_issue_comment_event(
        self,
        action: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Read a status declaration from a new comment."""
        if action != "created":
            return {"outcome": "ignored", "reason": f"Unhandled action: {action}"}

        issue_number = payload.get("issue", {}).get("number")
        if not issue_number:
            return {"outcome": "ignored", "reason": "No issue number in payload"}

        body = payload.get("comment", {}).get("body") or ""

        with log_context(issue_number=issue_number):
            status = await asyncio.to_thread(
                self.listener.handle_comment_added_event, issue_number, body
            )

        return self._status_result(issue_number, status)

    async def _handle_pull_request_event(
        self,
        action: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Mark newly opened pull requests as needing review."""
        if action != "opened":
            return {"outcome": "ignored", "reason": f"Unhandled action: {action}"}

        issue_number = payload.get("pull_request", {}).get("number") or payload.get("number")
        if not issue_number:
            return {"outcome": "ignored", "reason": "No pull request number in payload"}

        with log_context(issue_number=issue_number):
            status = await asyncio.to_thread(
                self.listener.handle_pull_request_created_event, issue_number
            )

        return self._status_result(issue_number, status)

    async def _handle_issues_event(
        self,
        action: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Triage issues when a label is added."""
        if action != "labeled":
            return {"outcome": "ignored", "reason": f"Unhandled action: {action}"}

        issue_number = payload.get("issue", {}).get("number")
        if not issue_number:
            return {"outcome": "ignored", "reason": "No issue number in payload"}

        label_name = payload.get("label", {}).get("name", "")

        with log_context(issue_number=issue_number):
            status = await asyncio.to_thread(
                self.listener.handle_label_added_event, issue_number, label_name
            )

        return self._status_result(issue_number, status)

    async def _handle_ping_event(
        self,
        action: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Acknowledge the ping GitHub sends when the webhook is created."""
        zen = payload.get("zen", "")
        hook_id = payload.get("hook_id", "")

        logger.info(f"Webhook ping received. Hook ID: {hook_id}, Zen: {zen}")

        return {
            "outcome": "pong",
            "hook_id": hook_id,
            "zen": zen,
        }

    @staticmethod
    def _issue_number(payload: Dict[str, Any]) -> Optional[int]:
        issue = payload.get("issue") or payload.get("pull_request") or {}
        return issue.get("number") or payload.get("number")

    @staticmethod
    def _status_result(issue_number: int, status) -> Dict[str, Any]:
        return {
            "outcome": "status_changed" if status else "unchanged",
            "issue": issue_number,
            "status_change": status.value if status else None,
        }

    # =========================================================================
    # STATISTICS
    # =========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """Return a copy of the webhook statistics."""
        stats = self.stats.copy()
        stats["by_event"] = dict(self.stats["by_event"])
        return stats

    def reset_stats(self) -> None:
        """Reset webhook statistics."""
        self.stats = self._empty_stats()


# =============================================================================
# WEBHOOK SERVER
# =============================================================================


class WebhookServer:
    """
    HTTP server receiving GitHub webhooks.

    Attributes:
        handler: WebhookHandler instance
        host: Host to bind to
        port: Port to listen on
        path: URL path for webhook endpoint
        metrics: Optional MetricsCollector served on /metrics
    """

    def __init__(
        self,
        handler: WebhookHandler,
        host: str = "0.0.0.0",
        port: int = 8080,
        path: str = "/webhooks/github",
        metrics: Any = None,
    ):
        self.handler = handler
        self.host = host
        self.port = port
        self.path = path
        self.metrics = metrics

        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._running = False

        logger.info(f"WebhookServer initialized (will listen on {host}:{port}{path})")

    def create_app(self) -> web.Application:
        """Build the aiohttp application with all routes."""
        app = web.Application()
        app.router.add_post(self.path, self._handle_webhook)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/stats", self._handle_stats)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self) -> None:
        """Start listening for connections."""
        if self._running:
            logger.warning("Webhook server already running")
            return

        self._app = self.create_app()

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._running = True
        logger.info(f"Webhook server started on http://{self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the webhook server."""
        if not self._running:
            return

        logger.info("Stopping webhook server...")

        if self._site:
            await self._site.stop()

        if self._runner:
            await self._runner.cleanup()

        self._running = False
        self._app = None
        self._runner = None
        self._site = None

        logger.info("Webhook server stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # REQUEST HANDLERS
    # =========================================================================

    async def _handle_webhook(self, request: web.Request) -> web.Response:
        try:
            body = await request.read()
            # CIMultiDictProxy, so header lookups are case-insensitive
            headers = request.headers

            result = await self.handler.handle_webhook(headers, body)

            status = 200 if result.get("status") != "error" else 500
            return web.json_response(result, status=status)

        except WebhookValidationError as e:
            logger.warning(f"Webhook validation failed: {e}")
            return web.json_response(
                {"status": "error", "error": "Invalid signature"},
                status=401,
            )

        except WebhookParseError as e:
            logger.warning(f"Webhook parse error: {e}")
            return web.json_response(
                {"status": "error", "error": str(e)},
                status=400,
            )

    async def _handle_health(self, request: web.Request) -> web.Response:
        del request
        return web.json_response({
            "status": "healthy",
            "server": "webhook",
            "running": self._running,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    async def _handle_stats(self, request: web.Request) -> web.Response:
        del request
        return web.json_response({
            "status": "ok",
            "stats": self.handler.get_stats(),
        })

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        del request
        if self.metrics is None:
            raise web.HTTPNotFound(text="Metrics disabled")
        return web.Response(
            body=self.metrics.export(),
            headers={"Content-Type": self.metrics.CONTENT_TYPE},
        )


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================


def create_webhook_handler(
    listener: StatusListener,
    config: Optional[Dict[str, Any]] = None,
    metrics: Any = None,
    audit_logger: Any = None,
) -> WebhookHandler:
    """
    Create a webhook handler from the merged configuration.

    Args:
        listener: StatusListener to dispatch to
        config: Full configuration dict (webhook and github sections)
        metrics: Optional MetricsCollector
        audit_logger: Optional AuditLogger
    """
    config = config or {}
    secret = config.get("webhook", {}).get("secret")
    return WebhookHandler(
        secret=str(secret) if secret is not None else "",
        listener=listener,
        repo=config.get("github", {}).get("repo") or None,
        metrics=metrics,
        audit_logger=audit_logger,
    )


def create_webhook_server(
    handler: WebhookHandler,
    config: Optional[Dict[str, Any]] = None,
    metrics: Any = None,
) -> WebhookServer:
    """
    Create a webhook server from the ``webhook`` config section.
    """
    config = config or {}

    return WebhookServer(
        handler=handler,
        host=config.get("host", "0.0.0.0"),
        port=int(config.get("port", 8080)),
        path=config.get("path", "/webhooks/github"),
        metrics=metrics,
    )


__all__ = [
    "WebhookHandler",
    "WebhookServer",
    "create_webhook_handler",
    "create_webhook_server",
    "WebhookError",
    "WebhookValidationError",
    "WebhookParseError",
    "HEADER_EVENT",
    "HEADER_SIGNATURE",
    "HEADER_DELIVERY",
    "SUPPORTED_EVENTS",
]
