"""
Structured logging utilities for the SFTPGo operator.

This module provides correlation ID tracking and structured log formatting
for reconciliation and retry events.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variable for tracking correlation IDs across async operations
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Paths that should be filtered from access logs (health probes)
HEALTH_PROBE_PATHS = frozenset({"/healthz", "/metrics"})

STRUCTURED_FIELDS = (
    "resource_type",
    "resource_name",
    "namespace",
    "operation",
    "duration",
    "error_type",
    "error_category",
    "requeue_after",
    "resource",
    "server_url",
    "http_status",
    "response_body",
)


class HealthProbeFilter(logging.Filter):
    """Logging filter that suppresses health probe and metrics endpoint logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return all(path not in message for path in HEALTH_PROBE_PATHS)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Add correlation ID to the log record.

        Args:
            record: The log record to process

        Returns:
            True to allow the record to be processed
        """
        current_correlation_id = correlation_id.get()
        if not current_correlation_id:
            current_correlation_id = generate_correlation_id()
            correlation_id.set(current_correlation_id)

        record.correlation_id = current_correlation_id
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs with correlation ID support.

    Formats log records as structured JSON for better parsing and analysis
    in production monitoring systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # extra= fields land as attributes on the record
        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        Unique correlation ID string
    """
    return str(uuid.uuid4())[:8]


def set_correlation_id(corr_id: str) -> str:
    """Set the correlation ID for the current context."""
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    """Get the current correlation ID, or empty string if none set."""
    return correlation_id.get("")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
) -> None:
    """
    Set up structured logging for the operator.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Whether to use JSON formatting
        correlation_id_enabled: Whether to enable correlation ID tracking
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if enable_json_formatting:
        formatter: logging.Formatter = StructuredFormatter()
    elif correlation_id_enabled:
        formatter = logging.Formatter(
            "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())
    handler.addFilter(HealthProbeFilter())

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Set specific logger levels for third-party libraries
    logging.getLogger("kopf").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


class OperatorLogger:
    """
    Enhanced logger for operator operations with structured logging support.

    Provides convenient methods for logging reconciliation events
    with proper correlation ID tracking and structured data.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_reconciliation_start(
        self,
        resource_type: str,
        resource_name: str,
        namespace: str | None,
        correlation_id: str | None = None,
    ) -> str:
        """
        Log the start of a reconciliation operation.

        Args:
            resource_type: Type of resource being reconciled
            resource_name: Name of the resource
            namespace: Namespace of the resource
            correlation_id: Optional correlation ID (will generate if not provided)

        Returns:
            The correlation ID used for this operation
        """
        if correlation_id is None:
            correlation_id = generate_correlation_id()

        set_correlation_id(correlation_id)

        self.logger.debug(
            f"Starting reconciliation for {resource_type} {resource_name}",
            extra={
                "resource_type": resource_type,
                "resource_name": resource_name,
                "namespace": namespace,
                "operation": "reconcile_start",
            },
        )

        return correlation_id

    def log_reconciliation_success(
        self,
        resource_type: str,
        resource_name: str,
        namespace: str | None,
        duration: float,
        requeue_after: float | None = None,
    ) -> None:
        """Log successful reconciliation completion and the returned action."""
        self.logger.info(
            f"Reconciled {resource_type} {resource_name}",
            extra={
                "resource_type": resource_type,
                "resource_name": resource_name,
                "namespace": namespace,
                "operation": "reconcile_success",
                "duration": duration,
                "requeue_after": requeue_after,
            },
        )

    def log_reconciliation_error(
        self,
        resource_type: str,
        resource_name: str,
        namespace: str | None,
        error: Exception,
        duration: float,
    ) -> None:
        """
        Log reconciliation error.

        Args:
            resource_type: Type of resource
            resource_name: Name of the resource
            namespace: Namespace of the resource
            error: The error that occurred
            duration: Reconciliation duration in seconds
        """
        self.logger.error(
            f"Reconcile failed for {resource_type} {resource_name}: {error}",
            extra={
                "resource_type": resource_type,
                "resource_name": resource_name,
                "namespace": namespace,
                "operation": "reconcile_error",
                "error_type": type(error).__name__,
                "error_category": getattr(error, "category", None),
                "duration": duration,
            },
            exc_info=error,
        )

    def log_requeue(
        self,
        resource_type: str,
        resource_name: str,
        namespace: str | None,
        requeue_after: float,
    ) -> None:
        """Log a retry scheduling decision."""
        self.logger.info(
            f"Requeueing {resource_type} {resource_name} in {requeue_after}s",
            extra={
                "resource_type": resource_type,
                "resource_name": resource_name,
                "namespace": namespace,
                "operation": "requeue",
                "requeue_after": requeue_after,
            },
        )

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with extra data."""
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message with extra data."""
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with extra data."""
        self.logger.warning(message, extra=kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs) -> None:
        """Log error message with extra data."""
        self.logger.error(message, exc_info=exc_info, extra=kwargs)
