# =============================================================================
# ISSUE STATUS BOT - ISSUES PACKAGE
# =============================================================================
"""
Issue Status Package

Components:
    - Status: The closed set of review statuses
    - StatusApi: Abstract status store (GitHub labels, in-memory)
    - StatusListener: Maps issue events to status changes

Usage:
    from statusbot.issues import StatusListener, InMemoryStatusApi

    listener = StatusListener(InMemoryStatusApi())
    listener.handle_comment_added_event(123, "Status: Code reviewed")
"""

from statusbot.issues.status import (
    Status,
    DISPLAY_NAMES,
    status_from_name,
)

from statusbot.issues.status_api import (
    StatusApi,
    GitHubStatusApi,
    InMemoryStatusApi,
    DEFAULT_STATUS_LABELS,
)

from statusbot.issues.listener import (
    StatusListener,
    parse_status,
)

__all__ = [
    # Statuses
    "Status",
    "DISPLAY_NAMES",
    "status_from_name",
    # Status API
    "StatusApi",
    "GitHubStatusApi",
    "InMemoryStatusApi",
    "DEFAULT_STATUS_LABELS",
    # Listener
    "StatusListener",
    "parse_status",
]
