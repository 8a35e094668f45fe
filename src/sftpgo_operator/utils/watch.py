"""
Watch stream of custom-resource changes, fed by kopf.

kopf owns the actual Kubernetes watch (reconnects, per-object ordering,
at-least-once delivery). This module turns its raw events into typed
WatchEvents the reconciliation driver consumes as an async iterator.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import kopf
from pydantic import ValidationError as PydanticValidationError

from sftpgo_operator.models.common import CustomResource

if TYPE_CHECKING:
    from sftpgo_operator.services.reconciliation_driver import ControllerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=CustomResource)

_END = object()


@dataclass(frozen=True)
class WatchEvent(Generic[T]):
    """One resource-changed notification."""

    resource: T
    event_type: str | None = None

    @property
    def deleted(self) -> bool:
        return self.event_type == "DELETED"

    @property
    def generation(self) -> int | None:
        return self.resource.metadata.generation


class KopfWatchStream(Generic[T]):
    """
    Async iterator of WatchEvents for one resource kind.

    Registers a ``kopf.on.event`` handler for the configured group, version
    and plural, filtered by the configured labels and ``when`` predicate.
    Must be created before ``kopf.run`` starts.
    """

    def __init__(
        self,
        resource_type: type[T],
        config: "ControllerConfig",
        registry: kopf.OperatorRegistry | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.config = config
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

        kopf.on.event(
            group=config.group,
            version=config.version,
            plural=config.plural,
            id=f"watch-{config.plural}",
            labels=dict(config.labels) or None,
            when=config.when,
            registry=registry,
        )(self.on_event)

    async def on_event(self, event: dict[str, Any], **_: Any) -> None:
        """kopf event handler: parse the object and enqueue it."""
        raw = event.get("object") or {}
        namespace = raw.get("metadata", {}).get("namespace")
        if self.config.namespaces and namespace not in self.config.namespaces:
            return

        try:
            resource = self.resource_type.model_validate(raw)
        except PydanticValidationError as e:
            name = raw.get("metadata", {}).get("name")
            logger.warning(
                f"Ignoring malformed {self.config.kind} {namespace}/{name}: "
                f"{e.error_count()} validation error(s)",
                extra={
                    "resource_type": self.config.kind,
                    "resource_name": name,
                    "namespace": namespace,
                },
            )
            return

        self._queue.put_nowait(WatchEvent(resource=resource, event_type=event.get("type")))

    def close(self) -> None:
        """End the stream after already queued events."""
        self._queue.put_nowait(_END)

    def __aiter__(self) -> "KopfWatchStream[T]":
        return self

    async def __anext__(self) -> WatchEvent[T]:
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        return item
