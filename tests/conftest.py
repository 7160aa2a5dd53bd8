"""Shared fixtures."""

import logging
from unittest.mock import Mock

import pytest

from monitoring.metrics import MetricsCollector
from statusbot.github.client import GitHubClient
from statusbot.issues.listener import StatusListener
from statusbot.issues.status_api import StatusApi


@pytest.fixture
def status_api():
    """Status API double; get_issue_status returns None (unset) by default."""
    api = Mock(spec=StatusApi)
    api.get_issue_status.return_value = None
    return api


@pytest.fixture
def listener(status_api):
    return StatusListener(status_api)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def github_client():
    client = Mock(spec=GitHubClient)
    client.repo = "acme/widgets"
    return client


@pytest.fixture
def restore_root_logging():
    """Put back the root logger handlers after setup_logging() replaced them."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
