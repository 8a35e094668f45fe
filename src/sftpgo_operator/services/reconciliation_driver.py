"""
Generic reconciliation driver.

Binds a stream of resource-changed events to a Reconciler and a shared
context. Each event carrying a new generation of a resource triggers
exactly one reconcile call; events that only change status or metadata
(including the reconciler's own status patches) do not. The returned
Action is honored by scheduling a later reconcile of the latest version of
that resource. Failures never stop the driver: they are logged and turned
into a fixed-delay retry by the error policy.

Serialization of events for the same object is left to the watch
mechanism. Reconcilers must tolerate being called again with a newer
version of a resource while a retry for an older one is still scheduled.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, Callable, Coroutine
from types import MappingProxyType
from typing import Any, Generic, TypeVar

from kubernetes.client.rest import ApiException

from sftpgo_operator.errors import OperatorError
from sftpgo_operator.models.action import Action
from sftpgo_operator.models.common import CustomResource
from sftpgo_operator.observability.logging import OperatorLogger
from sftpgo_operator.observability.metrics import (
    RECONCILIATION_DURATION,
    RECONCILIATION_TOTAL,
)
from sftpgo_operator.services.context import SharedContext
from sftpgo_operator.services.error_policy import error_policy
from sftpgo_operator.settings import settings as operator_settings
from sftpgo_operator.utils.kubernetes import cluster_api_error
from sftpgo_operator.utils.watch import KopfWatchStream, WatchEvent

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=CustomResource)


class Reconciler(ABC, Generic[T]):
    """Per-kind business logic driven by the ReconciliationDriver."""

    @abstractmethod
    async def reconcile(self, resource: T, context: SharedContext) -> Action:
        """
        Converge the external system towards ``resource``.

        Must be idempotent. Raise an OperatorError on failure.
        """


class ControllerConfig:
    """
    Watch configuration of one driver.

    Mutable while the customize hook runs, frozen before the first event.
    """

    def __init__(
        self,
        group: str,
        version: str,
        plural: str,
        kind: str,
        max_concurrent_reconciles: int,
    ) -> None:
        self.group = group
        self.version = version
        self.plural = plural
        self.kind = kind
        self.max_concurrent_reconciles = max_concurrent_reconciles
        self.namespaces: list[str] | tuple[str, ...] = []
        self.labels: dict[str, Any] | MappingProxyType = {}
        self.when: Callable[..., bool] | None = None

    @classmethod
    def for_resource(
        cls, resource_type: type[CustomResource], max_concurrent_reconciles: int
    ) -> "ControllerConfig":
        return cls(
            group=resource_type.group,
            version=resource_type.version,
            plural=resource_type.plural,
            kind=resource_type.kind,
            max_concurrent_reconciles=max_concurrent_reconciles,
        )

    @property
    def crd_name(self) -> str:
        return f"{self.plural}.{self.group}"

    @property
    def frozen(self) -> bool:
        return self.__dict__.get("_frozen", False)

    def __setattr__(self, name: str, value: Any) -> None:
        if self.frozen:
            raise AttributeError(
                f"ControllerConfig for {self.crd_name} is frozen; cannot set {name}"
            )
        super().__setattr__(name, value)

    def freeze(self) -> None:
        if self.max_concurrent_reconciles < 1:
            raise ValueError("max_concurrent_reconciles must be at least 1")
        self.namespaces = tuple(self.namespaces)
        self.labels = MappingProxyType(dict(self.labels))
        self.__dict__["_frozen"] = True


class ReconciliationDriver(Generic[T]):
    """
    Drives a Reconciler from a watch stream.

    The ``customize`` hook receives the ControllerConfig once, in the
    constructor, before any event is processed.
    """

    def __init__(
        self,
        resource_type: type[T],
        reconciler: Reconciler[T],
        customize: Callable[[ControllerConfig], None] | None = None,
        *,
        retry_delay: float | None = None,
        max_concurrent_reconciles: int | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.reconciler = reconciler
        self.retry_delay = (
            operator_settings.retry_delay_seconds if retry_delay is None else retry_delay
        )
        if self.retry_delay <= 0:
            raise ValueError("retry_delay must be positive")

        self.config = ControllerConfig.for_resource(
            resource_type,
            max_concurrent_reconciles or operator_settings.max_concurrent_reconciles,
        )
        if customize is not None:
            customize(self.config)
        self.config.freeze()

        self.logger = OperatorLogger(f"{__name__}.{resource_type.kind}")
        self._latest: dict[str, T] = {}
        self._timers: dict[str, asyncio.Task] = {}
        self._inflight: set[asyncio.Task] = set()
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_reconciles)
        self._stopping = False

    async def handle(self, resource: T, context: SharedContext) -> Action:
        """
        Reconcile one resource once and decide what happens next.

        Never raises for reconcile failures; they become a retry Action.
        """
        kind = self.config.kind
        name = resource.metadata.name
        namespace = resource.metadata.namespace
        start_time = time.monotonic()

        self.logger.log_reconciliation_start(
            resource_type=kind, resource_name=name, namespace=namespace
        )

        try:
            action = await self.reconciler.reconcile(resource, context)
        except OperatorError as e:
            error = e
        except ApiException as e:
            error = cluster_api_error(e, f"Kubernetes API call for {resource.key} failed")
        except Exception as e:
            # Anything outside the taxonomy still goes through the same retry
            error = OperatorError(
                f"Unexpected error during reconciliation: {e}",
                category="unexpected",
                cause=e,
            )
        else:
            duration = time.monotonic() - start_time
            RECONCILIATION_TOTAL.labels(resource_type=kind, result="success").inc()
            RECONCILIATION_DURATION.labels(resource_type=kind).observe(duration)
            self.logger.log_reconciliation_success(
                resource_type=kind,
                resource_name=name,
                namespace=namespace,
                duration=duration,
                requeue_after=action.requeue_after,
            )
            return action

        duration = time.monotonic() - start_time
        RECONCILIATION_TOTAL.labels(resource_type=kind, result="error").inc()
        RECONCILIATION_DURATION.labels(resource_type=kind).observe(duration)
        self.logger.log_reconciliation_error(
            resource_type=kind,
            resource_name=name,
            namespace=namespace,
            error=error,
            duration=duration,
        )
        return error_policy(resource, error, context, delay=self.retry_delay)

    async def run(
        self, watch: AsyncIterable[WatchEvent[T]], context: SharedContext
    ) -> None:
        """
        Consume ``watch`` until it ends.

        Pending retries are dropped when the stream ends; reconciles already
        running are awaited, or cancelled if ``run`` itself is cancelled.
        """
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_reconciles)
        self._stopping = False
        logger.info(f"Starting reconciler for {self.config.crd_name}")

        cancelled = False
        try:
            async for event in watch:
                self._dispatch(event, context)
        except asyncio.CancelledError:
            cancelled = True
            raise
        finally:
            await self._shutdown(cancel_inflight=cancelled)
            logger.info(f"Reconciler for {self.config.crd_name} stopped")

    @property
    def scheduled(self) -> dict[str, asyncio.Task]:
        """Keys with a pending requeue timer."""
        return dict(self._timers)

    def _dispatch(self, event: WatchEvent[T], context: SharedContext) -> None:
        key = event.resource.key

        if event.deleted:
            self._cancel_timer(key)
            self._latest.pop(key, None)
            logger.debug(f"{self.config.kind} {key} deleted, dropping it")
            return

        if self._seen_generation(key, event.resource):
            # Status or metadata change only; scheduled retries stay as they are
            self._latest[key] = event.resource
            logger.debug(
                f"{self.config.kind} {key} generation {event.generation} "
                "already seen, not reconciling"
            )
            return

        # A new version supersedes a scheduled retry of the old one
        self._cancel_timer(key)
        self._latest[key] = event.resource
        self._spawn(self._reconcile(event.resource, context))

    def _seen_generation(self, key: str, resource: T) -> bool:
        previous = self._latest.get(key)
        generation = resource.metadata.generation
        return (
            previous is not None
            and generation is not None
            and previous.metadata.generation == generation
        )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _reconcile(self, resource: T, context: SharedContext) -> None:
        async with self._semaphore:
            action = await self.handle(resource, context)

        if action.requeue_after is not None:
            self._schedule(resource.key, action.requeue_after, context)

    def _schedule(self, key: str, delay: float, context: SharedContext) -> None:
        if self._stopping or key not in self._latest:
            return

        self._cancel_timer(key)
        resource = self._latest[key]
        self.logger.log_requeue(
            resource_type=self.config.kind,
            resource_name=resource.metadata.name,
            namespace=resource.metadata.namespace,
            requeue_after=delay,
        )
        self._timers[key] = asyncio.create_task(self._requeue_after(key, delay, context))

    async def _requeue_after(
        self, key: str, delay: float, context: SharedContext
    ) -> None:
        await asyncio.sleep(delay)
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]

        resource = self._latest.get(key)
        if resource is None or self._stopping:
            return
        # Hand over to an in-flight task; timers are cancellable, reconciles are not
        self._spawn(self._reconcile(resource, context))

    def _cancel_timer(self, key: str) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    async def _shutdown(self, cancel_inflight: bool) -> None:
        self._stopping = True
        for key in list(self._timers):
            self._cancel_timer(key)

        if cancel_inflight:
            for task in self._inflight:
                task.cancel()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)


async def make_reconciler(
    resource_type: type[T],
    reconciler: Reconciler[T],
    context: SharedContext,
    customize: Callable[[ControllerConfig], None] | None = None,
    watch: AsyncIterable[WatchEvent[T]] | None = None,
) -> None:
    """
    Build a driver for ``resource_type`` and run it until the watch ends.

    Without an explicit ``watch`` a kopf-backed stream is registered; that
    must happen before kopf starts watching (at import or in a startup
    handler).
    """
    driver = ReconciliationDriver(resource_type, reconciler, customize)
    if watch is None:
        watch = KopfWatchStream(resource_type, driver.config)
    await driver.run(watch, context)
