# =============================================================================
# ISSUE STATUS BOT - STRUCTURED LOGGING
# =============================================================================
"""
Structured Logging Module

Provides consistent, structured logging across all components.
Modules log through stdlib ``logging.getLogger(__name__)``; records are
rendered by structlog so that bound context (issue number, event) shows
up on every line.

Features:
    - JSON-formatted logs for easy parsing
    - Contextual information bound per webhook delivery
    - Sensitive data masking
    - File output with rotation
    - Audit trail of status changes
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from structlog.contextvars import bind_contextvars, unbind_contextvars, merge_contextvars


# =============================================================================
# SENSITIVE DATA MASKING
# =============================================================================

# Keys whose values should be masked
SENSITIVE_KEYS = frozenset([
    "token", "api_key", "password", "secret", "credential",
    "private_key", "access_token", "authorization", "signature",
    "github_token", "webhook_secret",
])


def _is_sensitive(key: str) -> bool:
    """Check if a key name indicates sensitive data."""
    key_lower = key.lower().replace("-", "_")
    return any(s in key_lower for s in SENSITIVE_KEYS)


def _mask_value(value: Any) -> str:
    """Mask a sensitive value, keeping first/last 4 chars if long enough."""
    if not isinstance(value, str):
        return "****"
    if len(value) > 8:
        return value[:4] + "****" + value[-4:]
    return "****"


def mask_sensitive_data(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Structlog processor that masks sensitive data in log events.

    Recursively processes dictionaries to mask values whose keys
    match known sensitive patterns.
    """

    def _process(d: Dict[str, Any]) -> Dict[str, Any]:
        result = {}
        for key, value in d.items():
            if _is_sensitive(key):
                result[key] = _mask_value(value)
            elif isinstance(value, dict):
                result[key] = _process(value)
            else:
                result[key] = value
        return result

    return _process(event_dict)


def mask_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Mask sensitive data in an arbitrary dict (e.g. config dumps)."""
    return mask_sensitive_data(None, "", data)


# =============================================================================
# LOGGING SETUP
# =============================================================================


def _build_formatter(fmt: str, mask_sensitive: bool) -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering stdlib records through the structlog chain."""
    pre_chain = [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    processors: list = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if mask_sensitive:
        processors.append(mask_sensitive_data)

    if fmt == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=processors,
    )


def setup_logging(
    level: str = "INFO",
    fmt: str = "json",
    log_file: Optional[str] = None,
    log_dir: Optional[str] = None,
    mask_sensitive: bool = True,
    max_bytes: int = 50 * 1024 * 1024,  # 50 MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure structured logging for the bot.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: Console output format, ``"json"`` or ``"text"``.
        log_file: Explicit log file path. Overrides *log_dir*.
        log_dir: Directory for log files. When set (and *log_file* is
            ``None``), logs are written to ``<log_dir>/statusbot.log``.
        mask_sensitive: Mask sensitive values in logs.
        max_bytes: Max file size before rotation.
        backup_count: Number of rotated files to keep.

    Returns:
        Root logger instance.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    resolved_log_file: Optional[str] = log_file
    if resolved_log_file is None and log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        resolved_log_file = str(Path(log_dir) / "statusbot.log")

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(numeric_level)

    # Remove existing handlers to avoid duplicates on re-init
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(numeric_level)
    console.setFormatter(_build_formatter(fmt, mask_sensitive))
    root.addHandler(console)

    if resolved_log_file:
        Path(resolved_log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            resolved_log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_build_formatter("json", mask_sensitive))
        root.addHandler(file_handler)

    # Suppress noisy third-party loggers
    for name in ("urllib3", "aiohttp.access"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return root


# =============================================================================
# LOG CONTEXT MANAGER
# =============================================================================


class LogContext:
    """
    Context manager that binds key-value pairs to all logs emitted
    inside the block.

    Usage::

        with LogContext(issue_number=123, event="issue_comment"):
            logger.info("Handling comment")
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_contextvars(*self.context.keys())


@contextmanager
def log_context(**kwargs: Any):
    """Functional alias for :class:`LogContext`."""
    with LogContext(**kwargs) as ctx:
        yield ctx


# =============================================================================
# AUDIT LOGGER
# =============================================================================


class AuditLogger:
    """
    Audit trail of everything the bot changed.

    Records one JSON object per line. Event types:
        - ``status_change``: a status was written to the status API
        - ``github_api``: a GitHub API call
        - ``error``: a failure while handling an event

    Usage::

        audit = AuditLogger("./logs/audit.jsonl")
        audit.log_status_change(123, "needs_review", "pull_request.opened")
    """

    def __init__(
        self,
        output_path: str = "./logs/audit.jsonl",
        max_bytes: int = 100 * 1024 * 1024,  # 100 MB
        backup_count: int = 10,
    ):
        self.output_path = output_path
        self._logger = logging.getLogger(f"audit.{Path(output_path).resolve()}")
        self._logger.setLevel(logging.INFO)
        self._logger.propagate = False  # don't echo to root logger

        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        self._handler = logging.handlers.RotatingFileHandler(
            output_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        self._handler.setFormatter(logging.Formatter("%(message)s"))
        self._logger.addHandler(self._handler)

    def _write_event(self, event_type: str, data: Dict[str, Any]) -> None:
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            **data,
        }
        self._logger.info(json.dumps(event, default=str))

    def log_status_change(
        self,
        issue_number: int,
        to_status: str,
        trigger: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log a status written for an issue."""
        self._write_event("status_change", {
            "issue_number": issue_number,
            "to_status": to_status,
            "trigger": trigger,
            **(details or {}),
        })

    def log_github_api(
        self,
        endpoint: str,
        method: str,
        status: int,
    ) -> None:
        """Log a GitHub API call."""
        self._write_event("github_api", {
            "endpoint": endpoint,
            "method": method,
            "status": status,
        })

    def log_error(
        self,
        component: str,
        error_type: str,
        message: str,
        issue_number: Optional[int] = None,
    ) -> None:
        """Log an error event."""
        self._write_event("error", {
            "component": component,
            "error_type": error_type,
            "message": message,
            "issue_number": issue_number,
        })

    def close(self) -> None:
        """Detach and close the audit file handler."""
        self._logger.removeHandler(self._handler)
        self._handler.close()


__all__ = [
    "setup_logging",
    "mask_sensitive_data",
    "mask_dict",
    "LogContext",
    "log_context",
    "AuditLogger",
]
