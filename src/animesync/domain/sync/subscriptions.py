"""Push-channel lifecycle: one channel per topic, closed with its scope."""

from __future__ import annotations

import asyncio
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from animesync.config.sync import DEFAULT_CHANNEL_BUFFER_SIZE
from animesync.domain.errors import ChannelError

if TYPE_CHECKING:
    from collections.abc import Callable

    from animesync.domain.ports import Channel, ChangeEvent, PushBus, Topic

log = getLogger(__name__)


class HandleState(StrEnum):
    OPEN = "open"
    FAILED = "failed"
    CLOSED = "closed"


class _EndOfStream:
    pass


_END = _EndOfStream()


class SubscriptionHandle:
    """Ordered, at-least-once stream of events for one topic.

    Iterate with ``async for``. Once closed, buffered events are dropped and
    anything the bus still delivers is ignored.
    """

    def __init__(
        self,
        topic: Topic,
        *,
        buffer_size: int = DEFAULT_CHANNEL_BUFFER_SIZE,
        on_close: Callable[[SubscriptionHandle], None] | None = None,
    ) -> None:
        self.topic = topic
        self.state = HandleState.OPEN
        self.error: BaseException | None = None
        self._queue: asyncio.Queue[ChangeEvent | _EndOfStream] = asyncio.Queue(buffer_size)
        self._channel: Channel | None = None
        self._on_close = on_close

    def __repr__(self) -> str:
        return f"SubscriptionHandle(topic={self.topic.name!r}, state={self.state})"

    @property
    def is_open(self) -> bool:
        return self.state is HandleState.OPEN

    @property
    def closed(self) -> bool:
        return self.state is HandleState.CLOSED

    def attach(self, channel: Channel) -> None:
        self._channel = channel

    def deliver(self, event: ChangeEvent) -> None:
        """Bus callback. Queues the event unless the handle is no longer open."""

        if not self.is_open:
            log.debug("Dropping %s event on %s handle %s", event.kind, self.state, self.topic.name)
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.fail(ChannelError(f"Event buffer overflow on {self.topic.name}"))

    def fail(self, exc: BaseException) -> None:
        """Bus error callback. The handle stops and the next subscribe reopens it."""

        if not self.is_open:
            return
        log.warning("Channel %s dropped: %s", self.topic.name, exc)
        self.state = HandleState.FAILED
        self.error = exc
        self._close_channel()
        self._wake()

    def close(self) -> None:
        if self.closed:
            return
        self.state = HandleState.CLOSED
        self._close_channel()
        self._drain()
        self._wake()
        if self._on_close is not None:
            self._on_close(self)
        log.debug("Closed subscription %s", self.topic.name)

    def pending(self) -> list[ChangeEvent]:
        """Pop every buffered event without waiting."""

        events: list[ChangeEvent] = []
        if not self.is_open:
            return events
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if not isinstance(item, _EndOfStream):
                events.append(item)
        return events

    def __aiter__(self) -> SubscriptionHandle:
        return self

    async def __anext__(self) -> ChangeEvent:
        if self.closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, _EndOfStream) or self.closed:
            raise StopAsyncIteration
        return item

    def _close_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.close()

    def _drain(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()

    def _wake(self) -> None:
        if self._queue.full():
            self._drain()
        self._queue.put_nowait(_END)


class SubscriptionManager:
    """Owns the channels of one scope, keyed by topic name."""

    def __init__(self, bus: PushBus, *, buffer_size: int = DEFAULT_CHANNEL_BUFFER_SIZE) -> None:
        self._bus = bus
        self._buffer_size = buffer_size
        self._handles: dict[str, SubscriptionHandle] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def get(self, topic: Topic) -> SubscriptionHandle | None:
        return self._handles.get(topic.name)

    def subscribe(self, topic: Topic) -> SubscriptionHandle:
        """Return the open handle for ``topic``, opening a channel if needed.

        A handle whose channel failed is replaced by a fresh one. Failure to
        open is reported on the returned handle, never raised.
        """

        existing = self._handles.get(topic.name)
        if existing is not None:
            if existing.is_open:
                return existing
            existing.close()

        handle = SubscriptionHandle(
            topic, buffer_size=self._buffer_size, on_close=self._forget
        )
        self._handles[topic.name] = handle
        try:
            channel = self._bus.open_channel(topic, handle.deliver, handle.fail)
        except ChannelError as exc:
            handle.fail(exc)
            return handle
        handle.attach(channel)
        log.debug("Subscribed to %s", topic.name)
        return handle

    def close(self, topic: Topic) -> None:
        handle = self._handles.get(topic.name)
        if handle is not None:
            handle.close()

    def close_all(self) -> None:
        for handle in list(self._handles.values()):
            handle.close()

    def _forget(self, handle: SubscriptionHandle) -> None:
        if self._handles.get(handle.topic.name) is handle:
            del self._handles[handle.topic.name]
