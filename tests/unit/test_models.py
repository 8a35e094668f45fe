"""Unit tests for resource models and actions."""

import pytest
from pydantic import ValidationError

from sftpgo_operator.models.action import Action
from sftpgo_operator.models.server import SftpgoServer, SftpgoServerSpec


def server_dict(**spec):
    return {
        "apiVersion": "sftpgo.operator.dev/v1alpha1",
        "kind": "SftpgoServer",
        "metadata": {
            "name": "primary",
            "namespace": "sftp",
            "uid": "1234",
            "generation": 2,
            "resourceVersion": "991",
            "labels": {"team": "storage"},
            "managedFields": [{"manager": "kubectl"}],
        },
        "spec": {
            "url": "https://sftpgo.sftp.svc:8080",
            "adminCredentials": {"secretName": "sftpgo-admin"},
            **spec,
        },
        "status": {"ready": True},
    }


class TestAction:
    def test_await_change(self):
        action = Action.await_change()

        assert action.requeue_after is None
        assert not action.is_requeue

    def test_requeue(self):
        action = Action.requeue(15)

        assert action.requeue_after == 15.0
        assert action.is_requeue

    def test_actions_compare_by_value(self):
        assert Action.requeue(15) == Action.requeue(15.0)
        assert Action.requeue(15) != Action.await_change()

    @pytest.mark.parametrize("seconds", [0, -1])
    def test_requeue_requires_positive_delay(self, seconds):
        with pytest.raises(ValueError):
            Action.requeue(seconds)


class TestSftpgoServer:
    def test_parses_kubernetes_object(self):
        server = SftpgoServer.model_validate(server_dict())

        assert server.metadata.name == "primary"
        assert server.metadata.resource_version == "991"
        assert server.metadata.labels == {"team": "storage"}
        assert server.spec.url == "https://sftpgo.sftp.svc:8080"
        assert server.status == {"ready": True}

    def test_credential_key_defaults(self):
        server = SftpgoServer.model_validate(server_dict())
        credentials = server.spec.admin_credentials

        assert credentials.secret_name == "sftpgo-admin"
        assert credentials.username_key == "username"
        assert credentials.password_key == "password"

    def test_resync_default(self):
        server = SftpgoServer.model_validate(server_dict())

        assert server.spec.resync_seconds == 300

    def test_key_and_crd_name(self):
        server = SftpgoServer.model_validate(server_dict())

        assert server.key == "sftp/primary"
        assert SftpgoServer.crd_name() == "sftpgoservers.sftpgo.operator.dev"

    def test_cluster_scoped_key(self):
        data = server_dict()
        del data["metadata"]["namespace"]

        assert SftpgoServer.model_validate(data).key == "primary"

    def test_trailing_slash_stripped(self):
        server = SftpgoServer.model_validate(
            server_dict(url="https://sftpgo.example.com/admin/")
        )

        assert server.spec.url == "https://sftpgo.example.com/admin"

    @pytest.mark.parametrize("url", ["sftpgo.example.com", "ftp://sftpgo.example.com"])
    def test_url_scheme_required(self, url):
        with pytest.raises(ValidationError):
            SftpgoServer.model_validate(server_dict(url=url))

    def test_resync_must_be_positive(self):
        with pytest.raises(ValidationError):
            SftpgoServer.model_validate(server_dict(resyncSeconds=0))

    def test_credentials_required(self):
        with pytest.raises(ValidationError):
            SftpgoServerSpec.model_validate({"url": "https://sftpgo.example.com"})

    def test_populate_by_field_name(self):
        spec = SftpgoServerSpec(
            url="https://sftpgo.example.com",
            admin_credentials={"secret_name": "creds"},
            resync_seconds=30,
        )

        assert spec.admin_credentials.secret_name == "creds"
        assert spec.resync_seconds == 30
