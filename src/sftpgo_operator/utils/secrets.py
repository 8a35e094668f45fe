"""
Secret access for admin credentials.

Secret data arrives base64-encoded from the Kubernetes API; failures are
mapped to ClusterApiError, UserInputError or DecodingError.
"""

import asyncio
import base64
import binascii
import logging

from kubernetes import client
from kubernetes.client.rest import ApiException

from sftpgo_operator.constants import ERROR_MISSING_SECRET, ERROR_MISSING_SECRET_KEY
from sftpgo_operator.errors import DecodingError, UserInputError
from sftpgo_operator.utils.kubernetes import cluster_api_error

logger = logging.getLogger(__name__)


def decode_secret_value(encoded: str) -> str:
    """
    Decode a base64-encoded secret value to text.

    Raises:
        DecodingError: If the value is not valid base64 or not UTF-8
    """
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise DecodingError(f"Secret value could not be decoded: {e}", cause=e) from e


async def read_secret_value(
    api_client: client.ApiClient, name: str, namespace: str, key: str
) -> str:
    """
    Read and decode one key of a secret.

    Args:
        api_client: Kubernetes API client
        name: Secret name
        namespace: Secret namespace
        key: Key within the secret's data

    Returns:
        The decoded value

    Raises:
        UserInputError: If the secret or the key does not exist
        ClusterApiError: If reading the secret fails otherwise
        DecodingError: If the value is not valid base64/UTF-8
    """
    v1 = client.CoreV1Api(api_client)
    try:
        secret = await asyncio.to_thread(
            v1.read_namespaced_secret, name=name, namespace=namespace
        )
    except ApiException as e:
        if e.status == 404:
            raise UserInputError(
                ERROR_MISSING_SECRET.format(name, namespace),
                field="adminCredentials.secretName",
            ) from e
        raise cluster_api_error(
            e, f"Failed to read secret {namespace}/{name}"
        ) from e

    data = secret.data or {}
    if key not in data:
        raise UserInputError(ERROR_MISSING_SECRET_KEY.format(name, namespace, key))

    logger.debug(f"Read key '{key}' from secret {namespace}/{name}")
    return decode_secret_value(data[key])
