"""Unit tests for admin credential secret access."""

import base64
from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from sftpgo_operator.errors import ClusterApiError, DecodingError, UserInputError
from sftpgo_operator.utils.secrets import decode_secret_value, read_secret_value


def b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


@pytest.fixture
def core_api():
    """CoreV1Api mock installed for the secrets module."""
    mock_api = MagicMock()
    with patch(
        "sftpgo_operator.utils.secrets.client.CoreV1Api", return_value=mock_api
    ):
        yield mock_api


class TestDecodeSecretValue:
    def test_decodes_base64_utf8(self):
        assert decode_secret_value(b64("pässword")) == "pässword"

    def test_invalid_base64(self):
        with pytest.raises(DecodingError):
            decode_secret_value("not base64!")

    def test_invalid_utf8(self):
        encoded = base64.b64encode(b"\xff\xfe").decode()

        with pytest.raises(DecodingError) as exc_info:
            decode_secret_value(encoded)

        assert exc_info.value.category == "decoding"


class TestReadSecretValue:
    @pytest.mark.asyncio
    async def test_reads_and_decodes_key(self, core_api):
        core_api.read_namespaced_secret.return_value = client.V1Secret(
            data={"username": b64("admin"), "password": b64("secret")}
        )

        value = await read_secret_value(MagicMock(), "sftpgo-admin", "sftp", "password")

        assert value == "secret"
        core_api.read_namespaced_secret.assert_called_once_with(
            name="sftpgo-admin", namespace="sftp"
        )

    @pytest.mark.asyncio
    async def test_missing_secret_is_user_error(self, core_api):
        core_api.read_namespaced_secret.side_effect = ApiException(
            status=404, reason="Not Found"
        )

        with pytest.raises(UserInputError) as exc_info:
            await read_secret_value(MagicMock(), "missing", "sftp", "password")

        assert exc_info.value.field == "adminCredentials.secretName"
        assert "missing" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_forbidden_is_cluster_api_error(self, core_api):
        core_api.read_namespaced_secret.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        with pytest.raises(ClusterApiError) as exc_info:
            await read_secret_value(MagicMock(), "sftpgo-admin", "sftp", "password")

        assert exc_info.value.reason == "Forbidden"
        assert exc_info.value.category == "cluster_api"

    @pytest.mark.asyncio
    async def test_missing_key_is_user_error(self, core_api):
        core_api.read_namespaced_secret.return_value = client.V1Secret(
            data={"username": b64("admin")}
        )

        with pytest.raises(UserInputError) as exc_info:
            await read_secret_value(MagicMock(), "sftpgo-admin", "sftp", "password")

        assert "password" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_secret_is_user_error(self, core_api):
        core_api.read_namespaced_secret.return_value = client.V1Secret(data=None)

        with pytest.raises(UserInputError):
            await read_secret_value(MagicMock(), "sftpgo-admin", "sftp", "username")
