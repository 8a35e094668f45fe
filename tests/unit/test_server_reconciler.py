"""
Unit tests for the SftpgoServer reconciler.

Secrets and status patches are mocked; SFTPGo itself is an
httpx.MockTransport behind a real SftpgoMultiClient.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from sftpgo_operator.constants import SUCCESS_CONNECTED
from sftpgo_operator.errors import AuthIssuanceError, ClusterApiError, UserInputError
from sftpgo_operator.models.action import Action
from sftpgo_operator.models.server import SftpgoServer
from sftpgo_operator.services.context import SharedContext
from sftpgo_operator.services.reconciliation_driver import ReconciliationDriver
from sftpgo_operator.services.server_reconciler import SftpgoServerReconciler
from sftpgo_operator.utils.sftpgo_client import SftpgoMultiClient
from sftpgo_operator.utils.watch import WatchEvent

MODULE = "sftpgo_operator.services.server_reconciler"


def make_server(namespace="sftp", **spec) -> SftpgoServer:
    return SftpgoServer.model_validate(
        {
            "metadata": {"name": "primary", "namespace": namespace, "generation": 3},
            "spec": {
                "url": "https://sftpgo.sftp.svc:8080/",
                "adminCredentials": {"secretName": "sftpgo-admin"},
                **spec,
            },
        }
    )


class TokenEndpoint:
    def __init__(self, status=200):
        self.status = status
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.status != 200:
            return httpx.Response(self.status, json={"error": "denied"})
        return httpx.Response(
            200, json={"access_token": "abc", "expires_at": "2099-01-01T00:00:00Z"}
        )


@pytest.fixture
def token_endpoint():
    return TokenEndpoint()


@pytest.fixture
async def context(token_endpoint):
    ctx = SharedContext(
        kubernetes_client=MagicMock(),
        sftpgo_client=SftpgoMultiClient(transport=httpx.MockTransport(token_endpoint)),
    )
    yield ctx
    await ctx.sftpgo_client.aclose()


@pytest.fixture
def secrets():
    values = {"username": "admin", "password": "secret"}

    async def read(api_client, name, namespace, key):
        return values[key]

    with patch(f"{MODULE}.read_secret_value", side_effect=read) as mock:
        yield mock


@pytest.fixture
def patch_status():
    with patch(f"{MODULE}.patch_custom_object_status", new_callable=AsyncMock) as mock:
        yield mock


def last_status(patch_status) -> dict:
    return patch_status.call_args.kwargs["status"]


class TestSftpgoServerReconciler:
    @pytest.mark.asyncio
    async def test_success_marks_ready_and_schedules_resync(
        self, context, secrets, patch_status, token_endpoint
    ):
        action = await SftpgoServerReconciler().reconcile(make_server(), context)

        assert action == Action.requeue(300)
        status = last_status(patch_status)
        assert status["ready"] is True
        assert status["message"] == SUCCESS_CONNECTED
        assert status["observedGeneration"] == 3
        assert "lastReconciled" in status
        assert patch_status.call_args.kwargs["namespace"] == "sftp"
        assert patch_status.call_args.kwargs["plural"] == "sftpgoservers"
        assert token_endpoint.calls == 1

    @pytest.mark.asyncio
    async def test_custom_resync_interval(self, context, secrets, patch_status):
        action = await SftpgoServerReconciler().reconcile(
            make_server(resyncSeconds=60), context
        )

        assert action.requeue_after == 60

    @pytest.mark.asyncio
    async def test_reads_configured_secret_keys(self, context, patch_status):
        values = {"user": "admin", "pass": "secret"}

        async def read(api_client, name, namespace, key):
            return values[key]

        with patch(f"{MODULE}.read_secret_value", side_effect=read) as mock:
            await SftpgoServerReconciler().reconcile(
                make_server(
                    adminCredentials={
                        "secretName": "creds",
                        "usernameKey": "user",
                        "passwordKey": "pass",
                    }
                ),
                context,
            )

        keys = [c.args[3] for c in mock.call_args_list]
        assert keys == ["user", "pass"]
        assert all(c.args[1] == "creds" for c in mock.call_args_list)

    @pytest.mark.asyncio
    async def test_cached_token_reused_on_resync(
        self, context, secrets, patch_status, token_endpoint
    ):
        reconciler = SftpgoServerReconciler()

        await reconciler.reconcile(make_server(), context)
        await reconciler.reconcile(make_server(), context)

        assert token_endpoint.calls == 1
        assert len(context.sftpgo_client) == 1

    @pytest.mark.asyncio
    async def test_rejected_credentials_recorded_and_raised(
        self, context, secrets, patch_status, token_endpoint
    ):
        token_endpoint.status = 401

        with pytest.raises(AuthIssuanceError):
            await SftpgoServerReconciler().reconcile(make_server(), context)

        status = last_status(patch_status)
        assert status["ready"] is False
        assert "Admin token issuance failed" in status["message"]
        assert status["observedGeneration"] == 3

    @pytest.mark.asyncio
    async def test_missing_secret_recorded_and_raised(self, context, patch_status):
        with patch(
            f"{MODULE}.read_secret_value",
            side_effect=UserInputError("Required secret 'sftpgo-admin' not found"),
        ):
            with pytest.raises(UserInputError):
                await SftpgoServerReconciler().reconcile(make_server(), context)

        assert last_status(patch_status)["ready"] is False

    @pytest.mark.asyncio
    async def test_status_failure_does_not_mask_original_error(
        self, context, secrets, patch_status, token_endpoint
    ):
        token_endpoint.status = 401
        patch_status.side_effect = ClusterApiError("forbidden")

        with pytest.raises(AuthIssuanceError):
            await SftpgoServerReconciler().reconcile(make_server(), context)

    @pytest.mark.asyncio
    async def test_status_failure_on_success_propagates(
        self, context, secrets, patch_status
    ):
        patch_status.side_effect = ClusterApiError("forbidden")

        with pytest.raises(ClusterApiError):
            await SftpgoServerReconciler().reconcile(make_server(), context)

    @pytest.mark.asyncio
    async def test_cluster_scoped_resource_rejected(self, context, secrets, patch_status):
        server = make_server()
        server.metadata.namespace = None

        with pytest.raises(UserInputError):
            await SftpgoServerReconciler().reconcile(server, context)

        patch_status.assert_not_called()


class TestStatusEcho:
    """The reconciler's own status patches must not re-trigger it."""

    @pytest.mark.asyncio
    async def test_status_patch_event_does_not_reconcile_again(self, context, secrets):
        events: asyncio.Queue = asyncio.Queue()
        server = make_server()

        async def echo_status(api_client, **kwargs):
            # The API server answers a status patch with a MODIFIED event
            updated = server.model_copy(update={"status": kwargs["status"]})
            events.put_nowait(WatchEvent(updated, "MODIFIED"))
            return {"status": kwargs["status"]}

        async def watch():
            while (event := await events.get()) is not None:
                yield event

        driver = ReconciliationDriver(
            SftpgoServer, SftpgoServerReconciler(), retry_delay=15
        )
        events.put_nowait(WatchEvent(server, "ADDED"))

        with patch(
            f"{MODULE}.patch_custom_object_status", side_effect=echo_status
        ) as p:
            task = asyncio.create_task(driver.run(watch(), context))
            await asyncio.sleep(0.3)
            events.put_nowait(None)
            await task

        assert p.call_count == 1
        assert p.call_args.kwargs["status"]["ready"] is True
