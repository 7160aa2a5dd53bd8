# =============================================================================
# ISSUE STATUS BOT - MONITORING PACKAGE
# =============================================================================
"""
Monitoring Package

Logging, audit trail and metrics for the status bot.

Components:
    - Logger: Structured logging with structlog
    - Audit: Audit trail of status changes recorded to JSONL
    - Metrics: Prometheus counters

Usage:
    from monitoring import setup_logging, AuditLogger, MetricsCollector

    setup_logging(level="INFO", fmt="json", log_dir="./logs")
    audit = AuditLogger("./logs/audit.jsonl")
    metrics = MetricsCollector()
"""

from monitoring.logger import (
    setup_logging,
    AuditLogger,
    LogContext,
    log_context,
    mask_sensitive_data,
    mask_dict,
)

from monitoring.metrics import (
    MetricsCollector,
    create_metrics_collector,
)


__all__ = [
    # Logger
    "setup_logging",
    "AuditLogger",
    "LogContext",
    "log_context",
    "mask_sensitive_data",
    "mask_dict",
    # Metrics
    "MetricsCollector",
    "create_metrics_collector",
]
