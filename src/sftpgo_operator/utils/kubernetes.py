"""
Kubernetes utilities for the SFTPGo operator.

The kubernetes client is synchronous; calls made from reconcilers run in a
worker thread so they do not block the event loop.
"""

import asyncio
import logging
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from sftpgo_operator.errors import ClusterApiError

logger = logging.getLogger(__name__)


def load_kubernetes_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    Handles both in-cluster and local development configurations.
    """
    load_kubernetes_config()
    return client.ApiClient()


def cluster_api_error(e: ApiException, message: str) -> ClusterApiError:
    """Wrap a kubernetes ApiException in the operator error taxonomy."""
    return ClusterApiError(
        f"{message}: {e.status}", reason=getattr(e, "reason", None), cause=e
    )


async def patch_custom_object_status(
    api_client: client.ApiClient,
    group: str,
    version: str,
    plural: str,
    namespace: str,
    name: str,
    status: dict[str, Any],
) -> dict[str, Any]:
    """
    Merge-patch the status subresource of a namespaced custom object.

    Raises:
        ClusterApiError: If the patch is rejected or the API is unreachable
    """
    custom_api = client.CustomObjectsApi(api_client)
    try:
        return await asyncio.to_thread(
            custom_api.patch_namespaced_custom_object_status,
            group=group,
            version=version,
            namespace=namespace,
            plural=plural,
            name=name,
            body={"status": status},
        )
    except ApiException as e:
        raise cluster_api_error(
            e, f"Failed to patch status of {plural} {namespace}/{name}"
        ) from e
