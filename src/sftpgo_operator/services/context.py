"""
Process-wide context shared by every reconciliation.
"""

from dataclasses import dataclass
from datetime import timedelta

from kubernetes import client

from sftpgo_operator.settings import Settings, settings as operator_settings
from sftpgo_operator.utils.kubernetes import get_kubernetes_client
from sftpgo_operator.utils.sftpgo_client import SftpgoMultiClient


@dataclass(frozen=True)
class SharedContext:
    """
    Handles to the cluster API and to the SFTPGo servers.

    Created once at startup and never mutated; the credential caches inside
    the SFTPGo clients manage their own state.
    """

    kubernetes_client: client.ApiClient
    sftpgo_client: SftpgoMultiClient

    @classmethod
    def create(cls, settings: Settings = operator_settings) -> "SharedContext":
        """Build the context from operator settings and the local kube config."""
        return cls(
            kubernetes_client=get_kubernetes_client(),
            sftpgo_client=SftpgoMultiClient(
                timeout=settings.request_timeout_seconds,
                verify_ssl=settings.verify_ssl,
                safety_margin=timedelta(seconds=settings.token_safety_margin_seconds),
            ),
        )

    async def aclose(self) -> None:
        await self.sftpgo_client.aclose()
        self.kubernetes_client.close()
