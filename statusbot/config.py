# =============================================================================
# ISSUE STATUS BOT - CONFIGURATION
# =============================================================================
"""
Configuration loading.

Values come from, in increasing priority: built-in defaults, the YAML
file, and environment variables.

Example config/statusbot.yaml:

    github:
      repo: owner/repo
    webhook:
      port: 8080
      path: /webhooks/github
    status_labels:
      needs_review: "Status: Needs Review"
    logging:
      level: INFO
      fmt: json
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

from statusbot.issues.status import Status


logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration is invalid."""
    pass


# Environment variable -> (section, key)
ENV_MAPPINGS = {
    "GITHUB_TOKEN": ("github", "token"),
    "GITHUB_REPO": ("github", "repo"),
    "GITHUB_API_URL": ("github", "base_url"),
    "WEBHOOK_SECRET": ("webhook", "secret"),
    "WEBHOOK_HOST": ("webhook", "host"),
    "WEBHOOK_PORT": ("webhook", "port"),
    "WEBHOOK_PATH": ("webhook", "path"),
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "fmt"),
    "LOG_DIR": ("logging", "log_dir"),
    "AUDIT_LOG": ("logging", "audit_log"),
}

# Environment values for these keys are converted to int
INT_KEYS = {("webhook", "port")}

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "github": {
        "token": "",
        "repo": "",
        "base_url": None,
        "ensure_labels": False,
    },
    "webhook": {
        "secret": "",
        "host": "0.0.0.0",
        "port": 8080,
        "path": "/webhooks/github",
    },
    "logging": {
        "level": "INFO",
        "fmt": "json",
        "log_dir": None,
        "audit_log": None,
    },
    "metrics": {
        "enabled": True,
        "prefix": "statusbot",
    },
    "status_labels": {},
}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file and environment variables.

    Environment variables override YAML values.

    Args:
        config_path: Path to statusbot.yaml; a missing file is not an error

    Returns:
        Merged configuration dictionary

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping
    """
    config: Dict[str, Any] = {}

    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            try:
                config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping")
        logger.info(f"Loaded config from {config_path}")
    else:
        logger.warning(f"Config file not found: {config_path}, using defaults")

    # An empty "webhook:" section loads as None
    for section in DEFAULTS:
        if config.get(section) is None:
            config[section] = {}
        elif not isinstance(config[section], dict):
            raise ConfigError(f"Config section '{section}' must be a mapping")

    for env_var, (section, key) in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is not None:
            if (section, key) in INT_KEYS and value.isdigit():
                value = int(value)
            config[section][key] = value

    for section, section_defaults in DEFAULTS.items():
        for key, default_value in section_defaults.items():
            if key not in config[section]:
                config[section][key] = copy.deepcopy(default_value)

    return config


def validate_config(config: Dict[str, Any], dry_run: bool = False) -> None:
    """
    Check the merged configuration.

    Args:
        config: Output of load_config
        dry_run: GitHub credentials are not needed in dry-run mode

    Raises:
        ConfigError: Listing every problem found
    """
    problems = []

    if not dry_run:
        github = config.get("github", {})
        if not github.get("token"):
            problems.append("github.token is required (or set GITHUB_TOKEN)")
        repo = github.get("repo") or ""
        if "/" not in repo:
            problems.append("github.repo must be in owner/repo format (or set GITHUB_REPO)")

    valid_statuses = {status.value for status in Status}
    for key in config.get("status_labels", {}):
        if key not in valid_statuses:
            problems.append(
                f"status_labels.{key} is not a known status "
                f"(expected one of: {', '.join(sorted(valid_statuses))})"
            )

    try:
        port = int(config.get("webhook", {}).get("port", 0))
    except (TypeError, ValueError):
        port = -1
    if not 0 < port < 65536:
        problems.append("webhook.port must be between 1 and 65535")

    if problems:
        raise ConfigError("Invalid configuration:\n  - " + "\n  - ".join(problems))
