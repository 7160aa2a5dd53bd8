# =============================================================================
# ISSUE STATUS BOT - STATUS LISTENER
# =============================================================================
"""
Status Listener

Decides the new status of an issue from an incoming event and writes it
to the status API.

Rules:
    - Comment added: a line of its own reading "Status: <name>" sets the
      named status. The last such line in the comment wins.
    - Pull request created: always "Needs Review".
    - Label "bug" added: "Needs Review", unless the issue already has a
      status.

Status API errors are never caught here.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from statusbot.issues.status import Status, status_from_name
from statusbot.issues.status_api import StatusApi


logger = logging.getLogger(__name__)


# =============================================================================
# COMMENT PARSING
# =============================================================================

BUG_LABEL = "bug"

# A whole line: [**]Status[**]:[**] ["']name["'] followed by any mix of
# whitespace, ** and .!?
# The name starts and ends on a character the surrounding runs cannot
# match, which keeps matching linear in the line length.
STATUS_LINE_PATTERN = re.compile(
    r"""
    ^\s*
    (?:\*\*)?status(?:\*\*)?
    \s*:\s*
    (?:\*\*\s*)?
    (?P<quote>["']?)
    (?P<name>[^"'*\s](?:[^"'*]*[^"'*\s.!?])?)
    (?P=quote)
    (?:[\s.!?]|\*\*)*
    $
    """,
    re.IGNORECASE | re.VERBOSE,
)


def parse_status(comment_text: str) -> Optional[Status]:
    """
    Extract the status declared in a comment.

    Args:
        comment_text: Raw comment body

    Returns:
        Status of the last declaration line naming a known status,
        or None
    """
    declared = None

    for line in comment_text.splitlines():
        match = STATUS_LINE_PATTERN.match(line)
        if not match:
            continue

        status = status_from_name(match.group("name"))
        if status is None:
            logger.debug(f"Ignoring unknown status '{match.group('name')}'")
            continue

        declared = status

    return declared


# =============================================================================
# LISTENER CLASS
# =============================================================================


class StatusListener:
    """
    Maps issue events to status changes.

    Attributes:
        status_api: Backend holding the status of each issue
        audit_logger: Optional AuditLogger notified of every change
        metrics: Optional MetricsCollector counting changes
    """

    def __init__(
        self,
        status_api: StatusApi,
        audit_logger: Any = None,
        metrics: Any = None,
    ):
        self.status_api = status_api
        self.audit_logger = audit_logger
        self.metrics = metrics

    def handle_comment_added_event(
        self,
        issue_number: int,
        comment_text: str,
    ) -> Optional[Status]:
        """
        Apply a status declared in a new comment.

        Returns:
            The new status, or None if the comment declares none
        """
        status = parse_status(comment_text)
        if status is None:
            logger.debug(f"No status declaration in comment on issue #{issue_number}")
            return None

        self._set_status(issue_number, status, "comment_added")
        return status

    def handle_pull_request_created_event(self, issue_number: int) -> Status:
        """Mark a newly opened pull request as needing review."""
        self._set_status(issue_number, Status.NEEDS_REVIEW, "pull_request_created")
        return Status.NEEDS_REVIEW

    def handle_label_added_event(
        self,
        issue_number: int,
        label_name: str,
    ) -> Optional[Status]:
        """
        Triage a newly reported bug.

        Returns:
            Status.NEEDS_REVIEW if the issue was untriaged, else None
        """
        if label_name.lower() != BUG_LABEL:
            return None

        current = self.status_api.get_issue_status(issue_number)
        if current:
            logger.info(
                f"Issue #{issue_number} already has status "
                f"'{current.display_name}', not resetting"
            )
            return None

        self._set_status(issue_number, Status.NEEDS_REVIEW, "label_added")
        return Status.NEEDS_REVIEW

    def _set_status(self, issue_number: int, status: Status, trigger: str) -> None:
        self.status_api.set_issue_status(issue_number, status)

        logger.info(f"Issue #{issue_number} status set to '{status.display_name}' ({trigger})")

        if self.audit_logger is not None:
            self.audit_logger.log_status_change(issue_number, status.value, trigger)
        if self.metrics is not None:
            self.metrics.record_status_change(status.value, trigger)


__all__ = [
    "StatusListener",
    "parse_status",
    "STATUS_LINE_PATTERN",
    "BUG_LABEL",
]
