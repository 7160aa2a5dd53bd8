# =============================================================================
# ISSUE STATUS BOT - GITHUB INTEGRATION PACKAGE
# =============================================================================
"""
GitHub Integration Package

Components:
    - GitHubClient: Low-level API client (issues and labels)
    - WebhookHandler / WebhookServer: Receive webhooks and dispatch them
      to the status listener

Usage:
    from statusbot.github import GitHubClient

    client = GitHubClient(token="ghp_xxx", repo="owner/repo")
    labels = client.get_labels(123)
"""

from statusbot.github.client import (
    GitHubClient,
    GitHubAPIError,
    RateLimitError,
    NotFoundError,
    AuthenticationError,
    ValidationError,
)

__all__ = [
    # Client
    "GitHubClient",
    # Client Exceptions
    "GitHubAPIError",
    "RateLimitError",
    "NotFoundError",
    "AuthenticationError",
    "ValidationError",
]
