#!/usr/bin/env python3
"""
SFTPGo Operator - Main entry point for the Kopf-based SFTPGo operator.

kopf provides the Kubernetes watch; the operator's own reconciliation
driver consumes it, calls the reconcilers with the shared context and
retries failures after a fixed delay.

Usage:
    python -m sftpgo_operator.operator
    # Or with kopf directly:
    kopf run -m sftpgo_operator.operator --all-namespaces

Environment Variables:
    SFTPGO_OPERATOR_NAMESPACES: Comma-separated list of namespaces to watch
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    RECONCILE_RETRY_DELAY_SECONDS: Delay before a failed reconcile is retried
    SFTPGO_TOKEN_SAFETY_MARGIN_SECONDS: Early-expiry margin for admin tokens
"""

import asyncio
import logging
import sys

import kopf

from sftpgo_operator.models.server import SftpgoServer
from sftpgo_operator.observability.logging import setup_structured_logging
from sftpgo_operator.observability.metrics import MetricsServer
from sftpgo_operator.services.context import SharedContext
from sftpgo_operator.services.reconciliation_driver import (
    ControllerConfig,
    ReconciliationDriver,
)
from sftpgo_operator.services.server_reconciler import SftpgoServerReconciler
from sftpgo_operator.settings import settings as operator_settings
from sftpgo_operator.utils.watch import KopfWatchStream

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 10


def customize_server_controller(config: ControllerConfig) -> None:
    """Restrict the SftpgoServer watch to the configured namespaces."""
    watched = operator_settings.watched_namespaces
    if watched:
        config.namespaces = watched


# Drivers and their watches are set up at import so the kopf handlers are
# registered before kopf starts watching
server_driver = ReconciliationDriver(
    SftpgoServer,
    SftpgoServerReconciler(),
    customize_server_controller,
)
server_watch = KopfWatchStream(SftpgoServer, server_driver.config)


def configure_logging() -> None:
    """Configure structured logging for the operator based on operator_settings."""
    setup_structured_logging(
        log_level=operator_settings.log_level.upper(),
        enable_json_formatting=operator_settings.json_logs,
        correlation_id_enabled=operator_settings.correlation_ids,
    )


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Operator startup.

    Builds the shared context, starts the metrics server and launches the
    reconciliation driver loop.
    """
    logger.info("Starting SFTPGo Operator...")
    settings.watching.reconnect_backoff = 1.0
    settings.posting.enabled = False

    watched_namespaces = operator_settings.watched_namespaces
    if watched_namespaces:
        logger.info(f"Watching namespaces: {', '.join(watched_namespaces)}")
    else:
        logger.info("Watching all namespaces (cluster-wide mode)")

    context = SharedContext.create()
    memo.context = context

    metrics_server = MetricsServer(
        port=operator_settings.metrics_port, host=operator_settings.metrics_host
    )
    try:
        await metrics_server.start()
        memo.metrics_server = metrics_server
    except OSError as e:
        # Reconciliation does not depend on metrics
        logger.error(f"Failed to start metrics server: {e}")
        logger.warning("Continuing without metrics server")
        memo.metrics_server = None

    memo.driver_task = asyncio.create_task(
        server_driver.run(server_watch, context), name="sftpgoserver-driver"
    )


@kopf.on.cleanup()
async def cleanup_handler(memo: kopf.Memo, **_) -> None:
    """Stop the driver loop, close clients and stop the metrics server."""
    logger.info("Shutting down SFTPGo Operator...")

    driver_task: asyncio.Task | None = memo.get("driver_task")
    if driver_task is not None:
        server_watch.close()
        try:
            await asyncio.wait_for(driver_task, timeout=SHUTDOWN_TIMEOUT_SECONDS)
        except TimeoutError:
            logger.warning("Driver did not stop in time, cancelled it")

    context: SharedContext | None = memo.get("context")
    if context is not None:
        await context.aclose()

    metrics_server: MetricsServer | None = memo.get("metrics_server")
    if metrics_server is not None:
        await metrics_server.stop()


def main() -> None:
    """
    Main entry point for the operator.

    Configures logging and runs kopf for the configured namespace scope.
    """
    configure_logging()

    watched_namespaces = operator_settings.watched_namespaces

    try:
        if watched_namespaces:
            kopf.run(namespaces=watched_namespaces, standalone=True)
        else:
            kopf.run(clusterwide=True, standalone=True)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Operator failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
