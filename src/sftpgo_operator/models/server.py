"""
Pydantic models for SftpgoServer resources.

An SftpgoServer points the operator at one SFTPGo instance and the secret
holding its admin credentials.
"""

from pydantic import BaseModel, Field, field_validator

from sftpgo_operator.constants import (
    API_GROUP,
    API_VERSION,
    DEFAULT_PASSWORD_KEY,
    DEFAULT_RESYNC_SECONDS,
    DEFAULT_USERNAME_KEY,
    KIND_SFTPGO_SERVER,
    PLURAL_SFTPGO_SERVERS,
)
from sftpgo_operator.models.common import CustomResource


class AdminCredentialsRef(BaseModel):
    """
    Reference to the secret with SFTPGo admin credentials.

    The secret must be in the same namespace as the SftpgoServer.
    """

    model_config = {"populate_by_name": True}

    secret_name: str = Field(
        ..., alias="secretName", description="Name of the credentials secret"
    )
    username_key: str = Field(
        DEFAULT_USERNAME_KEY,
        alias="usernameKey",
        description="Key within the secret holding the admin username",
    )
    password_key: str = Field(
        DEFAULT_PASSWORD_KEY,
        alias="passwordKey",
        description="Key within the secret holding the admin password",
    )


class SftpgoServerSpec(BaseModel):
    """Specification of an SftpgoServer."""

    model_config = {"populate_by_name": True}

    url: str = Field(..., description="Base URL of the SFTPGo admin API")
    admin_credentials: AdminCredentialsRef = Field(..., alias="adminCredentials")
    resync_seconds: int = Field(
        DEFAULT_RESYNC_SECONDS,
        alias="resyncSeconds",
        ge=1,
        description="Interval between periodic credential checks",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v.rstrip("/")


class SftpgoServer(CustomResource):
    """The SftpgoServer custom resource."""

    group = API_GROUP
    version = API_VERSION
    plural = PLURAL_SFTPGO_SERVERS
    kind = KIND_SFTPGO_SERVER

    spec: SftpgoServerSpec
