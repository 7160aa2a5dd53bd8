# =============================================================================
# ISSUE STATUS BOT - WORKFLOW STATUSES
# =============================================================================
"""
Workflow Statuses

The closed set of review stages an issue can be in, plus the lookup
used to resolve free-text status names written by humans.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class Status(Enum):
    """Review stage of an issue."""
    NEEDS_REVIEW = "needs_review"
    CODE_REVIEWED = "code_reviewed"
    PM_APPROVED = "pm_approved"
    QA_APPROVED = "qa_approved"

    @property
    def display_name(self) -> str:
        """Human readable name, as written in comments and labels."""
        return DISPLAY_NAMES[self]


DISPLAY_NAMES: Dict[Status, str] = {
    Status.NEEDS_REVIEW: "Needs Review",
    Status.CODE_REVIEWED: "Code Reviewed",
    Status.PM_APPROVED: "PM Approved",
    Status.QA_APPROVED: "QA Approved",
}


def normalize_status_name(name: str) -> str:
    """Lower-case a status name and collapse its internal whitespace."""
    return " ".join(name.split()).lower()


# Built once; keys are normalized display names
_STATUS_BY_NAME: Dict[str, Status] = {
    normalize_status_name(display): status
    for status, display in DISPLAY_NAMES.items()
}


def status_from_name(name: str) -> Optional[Status]:
    """
    Resolve a free-text status name.

    Args:
        name: Status name as typed, e.g. "code reviewed" or "PM Approved"

    Returns:
        Matching Status, or None if the name is not a known status
    """
    return _STATUS_BY_NAME.get(normalize_status_name(name))


__all__ = [
    "Status",
    "DISPLAY_NAMES",
    "normalize_status_name",
    "status_from_name",
]
