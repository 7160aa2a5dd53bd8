# =============================================================================
# ISSUE STATUS BOT - PACKAGE
# =============================================================================
"""
Issue Status Bot

Keeps the review status of GitHub issues and pull requests up to date:

1. New pull requests are marked "Needs Review"
2. Bugs get "Needs Review" when first labeled, unless already triaged
3. Anyone can set a status by commenting a line such as

       Status: Code reviewed

Package Structure:
    - main.py: Entry point
    - config.py: YAML + environment configuration
    - issues/: Statuses, status API and the status listener
    - github/: GitHub API client and webhook handling

Usage:
    python -m statusbot.main --config config/statusbot.yaml
"""

__version__ = "1.0.0"
__author__ = "Issue Status Bot"

from statusbot.issues import Status, StatusApi, StatusListener

__all__ = [
    "Status",
    "StatusListener",
    "StatusApi",
]
