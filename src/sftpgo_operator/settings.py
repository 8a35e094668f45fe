"""Centralized operator settings using pydantic-settings.

This module provides a single source of truth for all operator configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sftpgo_operator.constants import (
    DEFAULT_MAX_CONCURRENT_RECONCILES,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_RETRY_DELAY_SECONDS,
    TOKEN_SAFETY_MARGIN_SECONDS,
)


class Settings(BaseSettings):
    """Operator configuration loaded from environment variables.

    All settings have sensible defaults for production use. Override via
    environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )

    # Namespace watching
    namespaces: str = Field(
        default="",
        validation_alias="SFTPGO_OPERATOR_NAMESPACES",
        description="Comma-separated list of namespaces to watch (empty = all namespaces)",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )

    # Reconciliation behavior
    retry_delay_seconds: float = Field(
        default=DEFAULT_RETRY_DELAY_SECONDS,
        gt=0,
        validation_alias="RECONCILE_RETRY_DELAY_SECONDS",
        description="Fixed delay before a failed reconciliation is attempted again",
    )
    max_concurrent_reconciles: int = Field(
        default=DEFAULT_MAX_CONCURRENT_RECONCILES,
        gt=0,
        validation_alias="MAX_CONCURRENT_RECONCILES",
        description="Maximum number of reconciliations running at the same time",
    )

    # SFTPGo admin API
    token_safety_margin_seconds: float = Field(
        default=TOKEN_SAFETY_MARGIN_SECONDS,
        ge=0,
        validation_alias="SFTPGO_TOKEN_SAFETY_MARGIN_SECONDS",
        description="Seconds subtracted from an admin token's expiry before it is treated as stale",
    )
    request_timeout_seconds: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        gt=0,
        validation_alias="SFTPGO_REQUEST_TIMEOUT_SECONDS",
        description="Timeout for requests to the SFTPGo admin API",
    )
    verify_ssl: bool = Field(
        default=True,
        validation_alias="SFTPGO_VERIFY_SSL",
        description="Verify TLS certificates of SFTPGo servers",
    )

    @property
    def watched_namespaces(self) -> list[str] | None:
        """Parse watched namespaces from comma-separated string.

        Returns:
            List of namespace names, or None to watch all namespaces
        """
        if self.namespaces:
            return [ns.strip() for ns in self.namespaces.split(",") if ns.strip()]
        return None


# Global settings instance - initialized once at module import
settings = Settings()
