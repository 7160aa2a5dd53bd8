# =============================================================================
# ISSUE STATUS BOT - TEST PACKAGE
# =============================================================================
"""
Test Package

Test Structure:
    tests/
    ├── conftest.py               # Shared fixtures
    ├── test_status.py            # Status names and lookup
    ├── test_listener.py          # Event to status rules
    ├── test_status_api.py        # GitHub label and in-memory backends
    ├── test_github_client.py     # GitHub REST client
    ├── test_webhook_handler.py   # Webhook dispatch and HTTP server
    ├── test_config.py            # Configuration loading
    └── test_monitoring.py        # Logging, audit trail, metrics

Running Tests:
    pip install -e ".[test]"
    pytest tests/ -v
"""
