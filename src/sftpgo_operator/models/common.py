"""
Common models shared across different resource types.

Defines the metadata envelope every custom resource carries and the base
class the reconciliation driver is generic over.
"""

from typing import Any, ClassVar

from pydantic import BaseModel, Field


class ObjectMeta(BaseModel):
    """The subset of Kubernetes object metadata the operator relies on."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    name: str = Field(..., description="Name of the resource")
    namespace: str | None = Field(
        None, description="Namespace of the resource (None for cluster-scoped)"
    )
    uid: str | None = Field(None, description="Unique identifier of the object")
    generation: int | None = Field(None, description="Spec generation")
    resource_version: str | None = Field(
        None, alias="resourceVersion", description="Version marker of the object"
    )
    labels: dict[str, str] = Field(default_factory=dict)


class CustomResource(BaseModel):
    """
    Base class for custom resources handled by the reconciliation driver.

    Subclasses declare their API coordinates as class variables and add a
    typed ``spec``. The driver only reads ``metadata`` to identify objects.
    """

    model_config = {"populate_by_name": True, "extra": "ignore"}

    group: ClassVar[str]
    version: ClassVar[str]
    plural: ClassVar[str]
    kind: ClassVar[str]

    metadata: ObjectMeta
    status: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def crd_name(cls) -> str:
        """Full CRD name, e.g. ``sftpgoservers.sftpgo.operator.dev``."""
        return f"{cls.plural}.{cls.group}"

    @property
    def key(self) -> str:
        """Identity of the object within its kind: ``namespace/name`` or ``name``."""
        if self.metadata.namespace:
            return f"{self.metadata.namespace}/{self.metadata.name}"
        return self.metadata.name
