"""
Observability for the SFTPGo operator: structured logging and Prometheus metrics.
"""

from .logging import OperatorLogger, setup_structured_logging
from .metrics import MetricsServer, get_metrics_registry

__all__ = [
    "OperatorLogger",
    "setup_structured_logging",
    "MetricsServer",
    "get_metrics_registry",
]
