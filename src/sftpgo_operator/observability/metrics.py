"""
Prometheus metrics for the SFTPGo operator.

This module provides metrics for reconciliation outcomes, retry scheduling
and admin token issuance, and the HTTP server that exposes them.
"""

import logging

# aiohttp is provided transitively by kopf
from aiohttp.web import AppRunner, Application, Request, Response, TCPSite
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global metrics registry
_metrics_registry: CollectorRegistry | None = None

RECONCILIATION_TOTAL = Counter(
    "sftpgo_operator_reconciliation_total",
    "Total number of reconciliation attempts",
    ["resource_type", "result"],
    registry=None,  # Registered in get_metrics_registry()
)

RECONCILIATION_DURATION = Histogram(
    "sftpgo_operator_reconciliation_duration_seconds",
    "Time spent on reconciliation operations",
    ["resource_type"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=None,
)

REQUEUE_TOTAL = Counter(
    "sftpgo_operator_requeue_total",
    "Total number of scheduled reconciliation retries",
    ["resource_type", "reason"],
    registry=None,
)

TOKEN_ISSUANCE_TOTAL = Counter(
    "sftpgo_operator_token_issuance_total",
    "Total number of SFTPGo admin token issuance attempts",
    ["result"],
    registry=None,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get or create the global metrics registry."""
    global _metrics_registry

    if _metrics_registry is None:
        _metrics_registry = CollectorRegistry()

        for metric in [
            RECONCILIATION_TOTAL,
            RECONCILIATION_DURATION,
            REQUEUE_TOTAL,
            TOKEN_ISSUANCE_TOTAL,
        ]:
            _metrics_registry.register(metric)

    return _metrics_registry


class MetricsServer:
    """HTTP server for exposing Prometheus metrics."""

    def __init__(self, port: int = 8081, host: str = "0.0.0.0"):
        """
        Initialize metrics server.

        Args:
            port: Port to serve metrics on
            host: Host interface to bind to
        """
        self.port = port
        self.host = host
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        metrics_data = generate_latest(get_metrics_registry())
        # aiohttp rejects a charset inside content_type
        return Response(
            body=metrics_data,
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )

    async def _healthz_handler(self, request: Request) -> Response:
        """Simple liveness endpoint, 200 while the server runs."""
        return Response(text="ok")

    async def start(self) -> None:
        """Start the metrics server."""
        self.runner = AppRunner(self.app)
        await self.runner.setup()

        self.site = TCPSite(self.runner, self.host, self.port)
        await self.site.start()

        logger.info(f"Metrics available at http://{self.host}:{self.port}/metrics")

    async def stop(self) -> None:
        """Stop the metrics server."""
        if self.site:
            await self.site.stop()
            self.site = None

        if self.runner:
            await self.runner.cleanup()
            self.runner = None

        logger.info("Metrics server stopped")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
