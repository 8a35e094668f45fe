"""
Error policy: every failed reconciliation is retried after a fixed delay.

The delay does not depend on the kind of error and never grows; a failed
resource is always revisited until its fault clears.
"""

import logging
from typing import Any

from sftpgo_operator.constants import DEFAULT_RETRY_DELAY_SECONDS
from sftpgo_operator.errors import OperatorError, UserInputError
from sftpgo_operator.models.action import Action
from sftpgo_operator.observability.metrics import REQUEUE_TOTAL

logger = logging.getLogger(__name__)


def error_policy(
    resource: Any,
    error: OperatorError,
    context: Any = None,
    delay: float = DEFAULT_RETRY_DELAY_SECONDS,
) -> Action:
    """
    Map a reconciliation error to a retry action.

    Args:
        resource: The resource whose reconciliation failed
        error: The error it failed with
        context: The shared context (unused, part of the policy signature)
        delay: Retry delay in seconds

    Returns:
        ``Action.requeue(delay)``, whatever the error
    """
    if delay <= 0:
        delay = DEFAULT_RETRY_DELAY_SECONDS

    resource_type = getattr(resource, "kind", type(resource).__name__)
    operation = (
        "user_input_error" if isinstance(error, UserInputError) else "reconcile_retry"
    )

    logger.error(
        f"Reconciliation error:\n{error!r}.\n{resource!r}",
        extra={
            "resource_type": resource_type,
            "operation": operation,
            "error_type": type(error).__name__,
            "error_category": getattr(error, "category", None),
            "requeue_after": delay,
            "resource": repr(resource),
        },
    )
    REQUEUE_TOTAL.labels(resource_type=resource_type, reason="error").inc()

    return Action.requeue(delay)
