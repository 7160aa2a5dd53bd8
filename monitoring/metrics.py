# =============================================================================
# ISSUE STATUS BOT - METRICS COLLECTION
# =============================================================================
"""
Metrics Collection Module

Prometheus counters for the webhook endpoint and the status changes it
causes. Each collector owns its own registry so several bots (or tests)
can live in one process.

Metric Categories:
    - Webhook metrics: deliveries received per event
    - Status metrics: status changes per status and trigger
    - Error metrics: failures per component
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

logger = logging.getLogger(__name__)


class MetricsCollector:
    """
    Collects bot metrics.

    Usage::

        metrics = MetricsCollector()
        metrics.record_webhook("issue_comment", "created")
        metrics.record_status_change("code_reviewed", "issue_comment.created")
        payload = metrics.export()
    """

    CONTENT_TYPE = CONTENT_TYPE_LATEST

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        prefix = self.config.get("prefix", "statusbot")

        self.registry = CollectorRegistry()

        self.webhooks_received = Counter(
            f"{prefix}_webhooks_received_total",
            "Webhook deliveries received",
            ["event", "action"],
            registry=self.registry,
        )
        self.status_changes = Counter(
            f"{prefix}_status_changes_total",
            "Statuses written to the status API",
            ["status", "trigger"],
            registry=self.registry,
        )
        self.errors = Counter(
            f"{prefix}_errors_total",
            "Errors while handling events",
            ["component", "error_type"],
            registry=self.registry,
        )
        self.system_info = Info(
            f"{prefix}_system",
            "Bot build information",
            registry=self.registry,
        )

        logger.debug("MetricsCollector initialized")

    def record_webhook(self, event: str, action: str = "") -> None:
        self.webhooks_received.labels(event=event, action=action or "none").inc()

    def record_status_change(self, status: str, trigger: str) -> None:
        self.status_changes.labels(status=status, trigger=trigger).inc()

    def record_error(self, component: str, error_type: str) -> None:
        self.errors.labels(component=component, error_type=error_type).inc()

    def set_system_info(self, **info: str) -> None:
        self.system_info.info(info)

    def get_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a sample, 0.0 if it was never recorded."""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def export(self) -> bytes:
        """Render all metrics in the Prometheus text format."""
        return generate_latest(self.registry)


def create_metrics_collector(config: Optional[Dict[str, Any]] = None) -> MetricsCollector:
    """Create a metrics collector from the ``metrics`` config section."""
    return MetricsCollector(config=config)


__all__ = [
    "MetricsCollector",
    "create_metrics_collector",
]
