"""
SftpgoServer reconciler.

Checks that the operator can authenticate against an SFTPGo server with the
admin credentials referenced by the resource, records the outcome in the
resource status and re-checks periodically.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from sftpgo_operator.constants import SUCCESS_CONNECTED
from sftpgo_operator.errors import ClusterApiError, OperatorError, UserInputError
from sftpgo_operator.models.action import Action
from sftpgo_operator.models.server import SftpgoServer
from sftpgo_operator.services.context import SharedContext
from sftpgo_operator.services.reconciliation_driver import Reconciler
from sftpgo_operator.utils.kubernetes import patch_custom_object_status
from sftpgo_operator.utils.secrets import read_secret_value

logger = logging.getLogger(__name__)


class SftpgoServerReconciler(Reconciler[SftpgoServer]):
    """Verifies admin access to an SFTPGo server and keeps its status current."""

    async def reconcile(
        self, resource: SftpgoServer, context: SharedContext
    ) -> Action:
        namespace = resource.metadata.namespace
        if not namespace:
            raise UserInputError(
                "SftpgoServer must be namespaced", field="metadata.namespace"
            )

        try:
            await self._authenticate(resource, namespace, context)
        except OperatorError as e:
            await self._record_failure(resource, namespace, context, e)
            raise

        await self._patch_status(
            resource,
            namespace,
            context,
            {
                "ready": True,
                "message": SUCCESS_CONNECTED,
                "observedGeneration": resource.metadata.generation,
                "lastReconciled": datetime.now(UTC).isoformat(),
            },
        )
        return Action.requeue(resource.spec.resync_seconds)

    async def _authenticate(
        self, resource: SftpgoServer, namespace: str, context: SharedContext
    ) -> None:
        credentials = resource.spec.admin_credentials
        username = await read_secret_value(
            context.kubernetes_client,
            credentials.secret_name,
            namespace,
            credentials.username_key,
        )
        password = await read_secret_value(
            context.kubernetes_client,
            credentials.secret_name,
            namespace,
            credentials.password_key,
        )

        client = await context.sftpgo_client.get_client(
            resource.spec.url, username, password
        )
        # Issues a token on first use or when the cached one went stale
        await client.get_auth_header_value()
        logger.debug(f"Admin access to {resource.spec.url} confirmed for {resource.key}")

    async def _record_failure(
        self,
        resource: SftpgoServer,
        namespace: str,
        context: SharedContext,
        error: OperatorError,
    ) -> None:
        try:
            await self._patch_status(
                resource,
                namespace,
                context,
                {
                    "ready": False,
                    "message": str(error),
                    "observedGeneration": resource.metadata.generation,
                },
            )
        except ClusterApiError as status_error:
            # The original error is what gets retried; this one is only reported
            logger.warning(
                f"Could not record failure status for {resource.key}: {status_error}"
            )

    async def _patch_status(
        self,
        resource: SftpgoServer,
        namespace: str,
        context: SharedContext,
        status: dict[str, Any],
    ) -> None:
        await patch_custom_object_status(
            context.kubernetes_client,
            group=resource.group,
            version=resource.version,
            plural=resource.plural,
            namespace=namespace,
            name=resource.metadata.name,
            status=status,
        )
