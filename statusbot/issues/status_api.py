# =============================================================================
# ISSUE STATUS BOT - STATUS API
# =============================================================================
"""
Status API

The system of record for per-issue status. The listener only talks to
the abstract StatusApi, so any backend (or a test double) can be swapped
in.

Implementations:
    - GitHubStatusApi: one GitHub label per status
    - InMemoryStatusApi: dict-backed, used for dry runs
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from statusbot.github.client import GitHubClient, GitHubAPIError
from statusbot.issues.status import Status, DISPLAY_NAMES


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

STATUS_LABEL_PREFIX = "Status: "

DEFAULT_STATUS_LABELS: Dict[Status, str] = {
    status: f"{STATUS_LABEL_PREFIX}{display}"
    for status, display in DISPLAY_NAMES.items()
}

# Label colors for auto-creation
STATUS_LABEL_COLORS: Dict[Status, str] = {
    Status.NEEDS_REVIEW: "fbca04",
    Status.CODE_REVIEWED: "1d76db",
    Status.PM_APPROVED: "5319e7",
    Status.QA_APPROVED: "0e8a16",
}


# =============================================================================
# INTERFACE
# =============================================================================


class StatusApi(ABC):
    """Reads and writes the workflow status of an issue."""

    @abstractmethod
    def get_issue_status(self, issue_number: int) -> Optional[Status]:
        """Return the current status of an issue, or None if unset."""

    @abstractmethod
    def set_issue_status(self, issue_number: int, status: Status) -> None:
        """Persist a new status for an issue."""


# =============================================================================
# GITHUB LABEL BACKEND
# =============================================================================


class GitHubStatusApi(StatusApi):
    """
    Stores the status of an issue as a GitHub label.

    Exactly one status label is kept on an issue; setting a status
    removes the labels of every other status.

    Attributes:
        client: GitHubClient for the tracked repository
        status_labels: Map of Status to label name
    """

    def __init__(
        self,
        client: GitHubClient,
        status_labels: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the label-backed status API.

        Args:
            client: Configured GitHubClient
            status_labels: Optional overrides, keyed by Status value
                (e.g. {"needs_review": "needs-review"})
        """
        self.client = client
        self.status_labels: Dict[Status, str] = dict(DEFAULT_STATUS_LABELS)
        for key, label in (status_labels or {}).items():
            self.status_labels[Status(key)] = label

        self._status_by_label = {
            label.lower(): status for status, label in self.status_labels.items()
        }

    def get_issue_status(self, issue_number: int) -> Optional[Status]:
        for label in self.client.get_labels(issue_number):
            status = self._status_by_label.get(label.get("name", "").lower())
            if status is not None:
                return status
        return None

    def set_issue_status(self, issue_number: int, status: Status) -> None:
        new_label = self.status_labels[status]
        already_labeled = False

        for label in self.client.get_labels(issue_number):
            name = label.get("name", "")
            if name.lower() == new_label.lower():
                already_labeled = True
            elif name.lower() in self._status_by_label:
                logger.debug(f"Removing label '{name}' from issue #{issue_number}")
                self.client.remove_label(issue_number, name)

        if not already_labeled:
            self.client.add_labels(issue_number, [new_label])

        logger.info(f"Issue #{issue_number} labeled '{new_label}'")

    def ensure_labels_exist(self) -> None:
        """Create any status label missing from the repository."""
        logger.info("Ensuring status labels exist in repository")

        for status, label in self.status_labels.items():
            try:
                self.client.get_or_create_label(
                    label,
                    STATUS_LABEL_COLORS[status],
                    f"Issue status: {status.display_name}",
                )
            except GitHubAPIError as e:
                logger.warning(f"Failed to ensure label '{label}': {e}")


# =============================================================================
# IN-MEMORY BACKEND
# =============================================================================


class InMemoryStatusApi(StatusApi):
    """Keeps statuses in a dict. Nothing leaves the process."""

    def __init__(self, statuses: Optional[Dict[int, Status]] = None):
        self.statuses: Dict[int, Status] = dict(statuses or {})

    def get_issue_status(self, issue_number: int) -> Optional[Status]:
        return self.statuses.get(issue_number)

    def set_issue_status(self, issue_number: int, status: Status) -> None:
        self.statuses[issue_number] = status


__all__ = [
    "StatusApi",
    "GitHubStatusApi",
    "InMemoryStatusApi",
    "DEFAULT_STATUS_LABELS",
    "STATUS_LABEL_COLORS",
    "STATUS_LABEL_PREFIX",
]
