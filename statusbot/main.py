# =============================================================================
# ISSUE STATUS BOT - MAIN ENTRY POINT
# =============================================================================
"""
Status Bot Main Module

Wires the GitHub client, status API, listener and webhook server
together and serves webhooks until interrupted.

Usage:
    python -m statusbot.main
    python -m statusbot.main --config config/statusbot.yaml
    python -m statusbot.main --dry-run --debug
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any, Dict, List, Optional

from monitoring.logger import AuditLogger, setup_logging
from monitoring.metrics import MetricsCollector, create_metrics_collector
from statusbot import __version__
from statusbot.config import ConfigError, load_config, validate_config
from statusbot.github.client import GitHubClient
from statusbot.github.webhook_handler import (
    WebhookServer,
    create_webhook_handler,
    create_webhook_server,
)
from statusbot.issues.listener import StatusListener
from statusbot.issues.status_api import GitHubStatusApi, InMemoryStatusApi, StatusApi


logger = logging.getLogger(__name__)


# =============================================================================
# BOT CLASS
# =============================================================================


class StatusBot:
    """
    Owns every component of a running bot.

    Attributes:
        config: Merged configuration dictionary
        dry_run: Keep statuses in memory instead of writing labels
    """

    def __init__(self, config: Dict[str, Any], dry_run: bool = False):
        self.config = config
        self.dry_run = dry_run
        self._shutdown_event = asyncio.Event()

        self.github_client: Optional[GitHubClient] = None
        self.audit_logger: Optional[AuditLogger] = None
        self.metrics: Optional[MetricsCollector] = None
        self.status_api: Optional[StatusApi] = None
        self.listener: Optional[StatusListener] = None
        self.server: Optional[WebhookServer] = None

    def setup(self, ensure_labels: bool = False) -> None:
        """Build all components. Must be called before run()."""
        logging_config = self.config.get("logging", {})
        if logging_config.get("audit_log"):
            self.audit_logger = AuditLogger(logging_config["audit_log"])

        if self.config.get("metrics", {}).get("enabled", True):
            self.metrics = create_metrics_collector(self.config.get("metrics"))
            self.metrics.set_system_info(version=__version__, dry_run=str(self.dry_run))

        if self.dry_run:
            logger.warning("Dry run: statuses are kept in memory only")
            self.status_api = InMemoryStatusApi()
        else:
            github_config = self.config.get("github", {})
            self.github_client = GitHubClient(
                token=github_config.get("token", ""),
                repo=github_config.get("repo", ""),
                base_url=github_config.get("base_url"),
                audit_logger=self.audit_logger,
            )
            self.status_api = GitHubStatusApi(
                self.github_client,
                status_labels=self.config.get("status_labels"),
            )
            if ensure_labels or github_config.get("ensure_labels"):
                self.status_api.ensure_labels_exist()

        self.listener = StatusListener(
            self.status_api,
            audit_logger=self.audit_logger,
            metrics=self.metrics,
        )

        handler = create_webhook_handler(
            self.listener, self.config,
            metrics=self.metrics, audit_logger=self.audit_logger,
        )
        self.server = create_webhook_server(
            handler, self.config.get("webhook"), metrics=self.metrics
        )

        logger.info("Status bot components initialized")

    async def run(self) -> None:
        """Serve webhooks until stop() is called."""
        await self.server.start()
        try:
            await self._shutdown_event.wait()
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Request shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()

    async def _cleanup(self) -> None:
        await self.server.stop()
        if self.github_client is not None:
            self.github_client.close()
        if self.audit_logger is not None:
            self.audit_logger.close()
        logger.info("Status bot stopped")


# =============================================================================
# CLI ARGUMENT PARSING
# =============================================================================


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Issue Status Bot - sets issue statuses from GitHub events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--config",
        default="config/statusbot.yaml",
        help="Path to configuration file (default: config/statusbot.yaml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Keep statuses in memory instead of labeling issues",
    )
    parser.add_argument(
        "--ensure-labels",
        action="store_true",
        help="Create missing status labels in the repository on startup",
    )

    return parser.parse_args(argv)


# =============================================================================
# SIGNAL HANDLING
# =============================================================================


def setup_signal_handlers(bot: StatusBot, loop: asyncio.AbstractEventLoop) -> None:
    """Setup signal handlers for graceful shutdown."""

    def signal_handler(sig):
        logger.info(f"Received signal {sig.name}, initiating shutdown...")
        loop.create_task(bot.stop())

    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler, sig)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================


async def async_main(config: Dict[str, Any], dry_run: bool = False, ensure_labels: bool = False) -> None:
    """Async entry point for the bot."""
    bot = StatusBot(config, dry_run=dry_run)
    bot.setup(ensure_labels=ensure_labels)

    setup_signal_handlers(bot, asyncio.get_running_loop())

    await bot.run()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
        validate_config(config, dry_run=args.dry_run)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    logging_config = config["logging"]
    setup_logging(
        level="DEBUG" if args.debug else logging_config["level"],
        fmt=logging_config["fmt"],
        log_dir=logging_config["log_dir"],
    )

    logger.info(f"Issue Status Bot {__version__} starting")

    try:
        asyncio.run(async_main(config, dry_run=args.dry_run, ensure_labels=args.ensure_labels))
    except KeyboardInterrupt:
        logger.info("Status bot stopped by user")
    except Exception as e:
        logger.critical(f"Status bot failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
