# =============================================================================
# ISSUE STATUS BOT - GITHUB API CLIENT
# =============================================================================
"""
GitHub API Client

Synchronous client for the parts of the GitHub REST API the bot needs:
reading and managing issue labels.

Features:
    - Token authentication
    - Rate limit tracking
    - Retry on transient server errors (urllib3 Retry)

Usage:
    client = GitHubClient(token="ghp_xxx", repo="owner/repo")
    labels = client.get_labels(123)
    client.add_labels(123, ["Status: Needs Review"])
"""

import logging
import os
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class GitHubAPIError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}

    def __str__(self):
        if self.status_code:
            return f"[{self.status_code}] {super().__str__()}"
        return super().__str__()


class RateLimitError(GitHubAPIError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, reset_time: int = None):
        super().__init__(message, status_code=403)
        self.reset_time = reset_time


class NotFoundError(GitHubAPIError):
    """Raised when resource is not found."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class AuthenticationError(GitHubAPIError):
    """Raised when authentication fails."""

    def __init__(self, message: str):
        super().__init__(message, status_code=401)


class ValidationError(GitHubAPIError):
    """Raised when request validation fails."""

    def __init__(self, message: str, errors: list = None):
        super().__init__(message, status_code=422)
        self.errors = errors or []


# =============================================================================
# GITHUB CLIENT CLASS
# =============================================================================

class GitHubClient:
    """
    GitHub API client scoped to a single repository.

    Attributes:
        token: GitHub API token
        repo: Repository in owner/repo format
        base_url: GitHub API base URL
    """

    DEFAULT_BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30
    DEFAULT_RETRY_COUNT = 3
    DEFAULT_BACKOFF_FACTOR = 0.5
    RATE_LIMIT_THRESHOLD = 10  # Wait when remaining requests below this
    MAX_RATE_LIMIT_WAIT = 60

    def __init__(
        self,
        token: str = None,
        repo: str = None,
        base_url: str = None,
        timeout: int = None,
        retry_count: int = None,
        backoff_factor: float = None,
        audit_logger: Any = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub API token (default: from GITHUB_TOKEN env)
            repo: Repository name (default: from GITHUB_REPO env)
            base_url: API base URL (default: github.com)
            timeout: Request timeout in seconds
            retry_count: Number of retries on server errors
            backoff_factor: Backoff multiplier for retries
            audit_logger: Optional AuditLogger recording every API call

        Raises:
            ValueError: If token or repo not provided
        """
        self.token = token or os.environ.get("GITHUB_TOKEN")
        self.repo = repo or os.environ.get("GITHUB_REPO")
        self.base_url = (base_url or os.environ.get("GITHUB_API_URL") or
                         self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.retry_count = retry_count if retry_count is not None else self.DEFAULT_RETRY_COUNT
        self.backoff_factor = backoff_factor or self.DEFAULT_BACKOFF_FACTOR
        self.audit_logger = audit_logger

        if not self.token:
            raise ValueError(
                "GitHub token required. Set GITHUB_TOKEN environment variable "
                "or pass token parameter."
            )

        if not self.repo:
            raise ValueError(
                "GitHub repository required. Set GITHUB_REPO environment variable "
                "or pass repo parameter (format: owner/repo)."
            )

        if "/" not in self.repo:
            raise ValueError(
                f"Invalid repository format: {self.repo}. "
                "Expected format: owner/repo"
            )

        self._session = self._create_session()
        self._rate_limit_remaining: Optional[int] = None
        self._rate_limit_reset: Optional[int] = None

        logger.info(f"GitHubClient initialized for {self.repo}")

    def _create_session(self) -> requests.Session:
        """Create configured HTTP session with retry logic."""
        session = requests.Session()

        session.headers.update({
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "Issue-Status-Bot/1.0",
        })

        retry_strategy = Retry(
            total=self.retry_count,
            backoff_factor=self.backoff_factor,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    # =========================================================================
    # LABEL OPERATIONS
    # =========================================================================

    def get_labels(self, issue_number: int) -> List[dict]:
        """Get all labels on an issue."""
        endpoint = f"/repos/{self.repo}/issues/{issue_number}/labels"
        return self._request("GET", endpoint)

    def add_labels(self, issue_number: int, labels: List[str]) -> List[dict]:
        """
        Add labels to an issue.

        Args:
            issue_number: Issue to label
            labels: List of label names to add

        Returns:
            List of all labels on the issue
        """
        endpoint = f"/repos/{self.repo}/issues/{issue_number}/labels"
        return self._request("POST", endpoint, data={"labels": labels})

    def remove_label(self, issue_number: int, label: str) -> bool:
        """
        Remove a label from an issue.

        Returns:
            True if removed, False if the label was not on the issue
        """
        endpoint = f"/repos/{self.repo}/issues/{issue_number}/labels/{quote(label, safe='')}"
        try:
            self._request("DELETE", endpoint)
            return True
        except NotFoundError:
            return False

    def create_label(
        self,
        name: str,
        color: str,
        description: str = "",
    ) -> dict:
        """
        Create a repository label.

        Args:
            name: Label name
            color: Hex colour without the leading '#'
            description: Optional label description
        """
        endpoint = f"/repos/{self.repo}/labels"
        data = {"name": name, "color": color}
        if description:
            data["description"] = description
        return self._request("POST", endpoint, data=data)

    def get_or_create_label(self, name: str, color: str, description: str = "") -> dict:
        """Return an existing repository label, creating it if missing."""
        endpoint = f"/repos/{self.repo}/labels/{quote(name, safe='')}"
        try:
            return self._request("GET", endpoint)
        except NotFoundError:
            logger.info(f"Creating label '{name}'")
            return self.create_label(name, color, description)

    # =========================================================================
    # RATE LIMITING
    # =========================================================================

    def _update_rate_limit(self, response: requests.Response):
        """Track rate limit headers from the last response."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")

        if remaining is not None:
            self._rate_limit_remaining = int(remaining)
        if reset is not None:
            self._rate_limit_reset = int(reset)

    def _check_rate_limit(self):
        """Sleep until reset when close to the rate limit."""
        if self._rate_limit_remaining is None or self._rate_limit_reset is None:
            return

        if self._rate_limit_remaining >= self.RATE_LIMIT_THRESHOLD:
            return

        wait_time = self._rate_limit_reset - time.time()
        if wait_time <= 0:
            return

        wait_time = min(wait_time, self.MAX_RATE_LIMIT_WAIT)
        logger.warning(
            f"Rate limit low ({self._rate_limit_remaining} remaining), "
            f"waiting {wait_time:.0f}s"
        )
        time.sleep(wait_time)

    # =========================================================================
    # HTTP
    # =========================================================================

    def _request(
        self,
        method: str,
        endpoint: str,
        data: dict = None,
        params: dict = None,
    ) -> Any:
        """
        Make authenticated API request.

        Raises:
            GitHubAPIError: Or a subclass, for any failed request
        """
        self._check_rate_limit()

        url = f"{self.base_url}{endpoint}"

        logger.debug(f"GitHub API: {method} {endpoint}")

        try:
            response = self._session.request(
                method=method,
                url=url,
                json=data,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise GitHubAPIError(f"Request timed out: {method} {endpoint}")
        except requests.exceptions.ConnectionError as e:
            raise GitHubAPIError(f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise GitHubAPIError(f"Request failed: {e}")

        self._update_rate_limit(response)

        if self.audit_logger is not None:
            self.audit_logger.log_github_api(endpoint, method, response.status_code)

        if response.status_code >= 400:
            self._handle_error(response)

        # 204 No Content
        if response.status_code == 204:
            return {}

        return response.json()

    def _handle_error(self, response: requests.Response) -> None:
        """Raise the exception matching an error response."""
        status_code = response.status_code
        error_data: Dict[str, Any] = {}

        try:
            error_data = response.json()
            message = error_data.get("message", response.text)
            errors = error_data.get("errors", [])
        except ValueError:
            message = response.text
            errors = []

        logger.error(f"GitHub API error [{status_code}]: {message}")

        if status_code == 401:
            raise AuthenticationError(
                "Authentication failed. Check your GitHub token."
            )

        if status_code == 403:
            if "rate limit" in message.lower():
                raise RateLimitError(
                    message,
                    reset_time=self._rate_limit_reset
                )
            raise GitHubAPIError(message, status_code, error_data)

        if status_code == 404:
            raise NotFoundError(f"Resource not found: {message}")

        if status_code == 422:
            raise ValidationError(message, errors)

        raise GitHubAPIError(message, status_code)

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the HTTP session."""
        if self._session:
            self._session.close()
            logger.debug("GitHubClient session closed")
