"""
Services package - Reconciliation driver, error policy and reconcilers.

The driver binds a watch stream of custom resources to a Reconciler and the
process-wide SharedContext; the error policy turns every failure into a
fixed-delay retry.
"""

from .context import SharedContext
from .error_policy import error_policy
from .reconciliation_driver import (
    ControllerConfig,
    ReconciliationDriver,
    Reconciler,
    make_reconciler,
)
from .server_reconciler import SftpgoServerReconciler

__all__ = [
    "SharedContext",
    "error_policy",
    "ControllerConfig",
    "ReconciliationDriver",
    "Reconciler",
    "make_reconciler",
    "SftpgoServerReconciler",
]
