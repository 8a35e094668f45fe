"""Unit tests for the kopf-backed watch stream."""

import asyncio

import kopf
import pytest

from sftpgo_operator.models.server import SftpgoServer
from sftpgo_operator.services.reconciliation_driver import ControllerConfig
from sftpgo_operator.utils.watch import KopfWatchStream, WatchEvent


def server_object(name="primary", namespace="sftp", generation=1, **spec):
    return {
        "apiVersion": "sftpgo.operator.dev/v1alpha1",
        "kind": "SftpgoServer",
        "metadata": {"name": name, "namespace": namespace, "generation": generation},
        "spec": {
            "url": "https://sftpgo.sftp.svc:8080",
            "adminCredentials": {"secretName": "sftpgo-admin"},
            **spec,
        },
    }


def make_stream(namespaces=(), labels=None):
    config = ControllerConfig.for_resource(SftpgoServer, max_concurrent_reconciles=5)
    config.namespaces = list(namespaces)
    config.labels = labels or {}
    config.freeze()
    registry = kopf.OperatorRegistry()
    return KopfWatchStream(SftpgoServer, config, registry=registry), registry


class TestWatchEvent:
    """Test the WatchEvent helpers."""

    def test_deleted_flag(self):
        resource = SftpgoServer.model_validate(server_object())

        assert WatchEvent(resource, "DELETED").deleted
        assert not WatchEvent(resource, "MODIFIED").deleted
        assert not WatchEvent(resource).deleted

    def test_generation(self):
        resource = SftpgoServer.model_validate(server_object(generation=7))

        assert WatchEvent(resource).generation == 7


class TestKopfWatchStream:
    """Test event parsing and filtering."""

    @pytest.mark.asyncio
    async def test_event_is_parsed_and_queued(self):
        stream, _ = make_stream()

        await stream.on_event(event={"type": "ADDED", "object": server_object()})
        event = await anext(stream)

        assert isinstance(event.resource, SftpgoServer)
        assert event.resource.key == "sftp/primary"
        assert event.event_type == "ADDED"
        assert event.resource.spec.admin_credentials.secret_name == "sftpgo-admin"

    @pytest.mark.asyncio
    async def test_events_keep_order(self):
        stream, _ = make_stream()

        for generation in (1, 2, 3):
            await stream.on_event(
                event={"type": "MODIFIED", "object": server_object(generation=generation)}
            )
        stream.close()

        generations = [event.generation async for event in stream]
        assert generations == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_namespace_filter(self):
        stream, _ = make_stream(namespaces=["sftp"])

        await stream.on_event(
            event={"type": "ADDED", "object": server_object(namespace="other")}
        )
        await stream.on_event(event={"type": "ADDED", "object": server_object()})
        stream.close()

        events = [event async for event in stream]
        assert [e.resource.metadata.namespace for e in events] == ["sftp"]

    @pytest.mark.asyncio
    async def test_malformed_object_skipped(self, caplog):
        stream, _ = make_stream()
        malformed = server_object()
        del malformed["spec"]["url"]

        await stream.on_event(event={"type": "ADDED", "object": malformed})
        stream.close()

        assert [event async for event in stream] == []
        assert "Ignoring malformed SftpgoServer" in caplog.text

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self):
        stream, _ = make_stream()
        stream.close()

        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(anext(stream), timeout=1)
