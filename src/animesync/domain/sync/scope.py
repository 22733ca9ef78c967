"""Ownership boundary for one cache and everything that writes to it."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from animesync.config.sync import DEFAULT_CHANNEL_BUFFER_SIZE
from animesync.domain.sync.cache import LocalCache
from animesync.domain.sync.optimistic import OptimisticMutationEngine
from animesync.domain.sync.reconciler import Reconciler
from animesync.domain.sync.subscriptions import SubscriptionManager

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from animesync.domain.ports import PushBus, RowStore, Topic
    from animesync.domain.sync.optimistic import FailureListener
    from animesync.domain.sync.paginator import CatalogPaginator
    from animesync.domain.sync.subscriptions import SubscriptionHandle

log = getLogger(__name__)


class ScopeClosedError(RuntimeError):
    """Raised when work is started on a scope that has been torn down."""


class SyncScope:
    """Wires cache, optimistic engine, reconciler and subscriptions together.

    Closing the scope closes its channels, stops event pumps, detaches the
    engine and the paginators, and turns late fetch results into no-ops.
    """

    def __init__(
        self,
        *,
        store: RowStore,
        bus: PushBus,
        user_id: str | None,
        buffer_size: int = DEFAULT_CHANNEL_BUFFER_SIZE,
        on_failure: FailureListener | None = None,
    ) -> None:
        self.cache = LocalCache(user_id=user_id)
        self.engine = OptimisticMutationEngine(self.cache, store, on_failure=on_failure)
        self.reconciler = Reconciler(self.cache, self.engine)
        self.subscriptions = SubscriptionManager(bus, buffer_size=buffer_size)
        self._pumps: dict[str, asyncio.Task[None]] = {}
        self._paginators: list[CatalogPaginator] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def follow(self, topic: Topic) -> SubscriptionHandle:
        """Subscribe to ``topic`` and feed its events to the reconciler."""

        if self._closed:
            raise ScopeClosedError("Scope is closed")
        handle = self.subscriptions.subscribe(topic)
        pump = self._pumps.get(topic.name)
        if handle.is_open and (pump is None or pump.done()):
            loop = asyncio.get_running_loop()
            self._pumps[topic.name] = loop.create_task(
                self._pump(handle), name=f"pump:{topic.name}"
            )
        return handle

    def unfollow(self, topic: Topic) -> None:
        self.subscriptions.close(topic)
        pump = self._pumps.pop(topic.name, None)
        if pump is not None:
            pump.cancel()

    def track(self, paginator: CatalogPaginator) -> CatalogPaginator:
        self._paginators.append(paginator)
        return paginator

    async def guard[T](self, awaitable: Awaitable[T]) -> T | None:
        """Await a fetch, returning ``None`` if the scope closed meanwhile."""

        result = await awaitable
        if self._closed:
            log.debug("Discarding result that arrived after teardown")
            return None
        return result

    async def _pump(self, handle: SubscriptionHandle) -> None:
        async for event in handle:
            if self._closed or not handle.is_open:
                break
            self.reconciler.on_event(event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.subscriptions.close_all()
        pumps = list(self._pumps.values())
        self._pumps.clear()
        for pump in pumps:
            pump.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)
        for paginator in self._paginators:
            paginator.close()
        self.engine.detach()
        log.debug("Scope closed")
