"""In-process push bus: fans row changes out to subscribed topics."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from animesync.domain.errors import ChannelError
from animesync.domain.model import ChangeKind
from animesync.domain.ports import ChangeEvent, ChangePublisher, PushBus

if TYPE_CHECKING:
    from collections.abc import Mapping

    from animesync.domain.model import Table
    from animesync.domain.ports import ErrorListener, EventListener, Topic

log = getLogger(__name__)


class LocalChannel:
    def __init__(
        self,
        bus: InProcessPushBus,
        topic: Topic,
        listener: EventListener,
        on_error: ErrorListener,
    ) -> None:
        self.topic = topic
        self.listener = listener
        self.on_error = on_error
        self._bus = bus
        self.closed = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._bus.detach(self)


class InProcessPushBus:
    """Delivers every published change synchronously to matching channels.

    Events on one topic reach listeners in publish order. Used with the local
    row store and as the echo path for remote writes made by this process.
    """

    def __init__(self) -> None:
        self._channels: dict[str, list[LocalChannel]] = {}
        self._closed = False

    def open_channel(
        self,
        topic: Topic,
        listener: EventListener,
        on_error: ErrorListener,
    ) -> LocalChannel:
        if self._closed:
            raise ChannelError(f"Push bus is closed; cannot subscribe to {topic.name}")
        channel = LocalChannel(self, topic, listener, on_error)
        self._channels.setdefault(topic.name, []).append(channel)
        log.debug("Opened channel %s", topic.name)
        return channel

    def detach(self, channel: LocalChannel) -> None:
        channels = self._channels.get(channel.topic.name)
        if channels is None or channel not in channels:
            return
        channels.remove(channel)
        if not channels:
            del self._channels[channel.topic.name]

    def channel_count(self, topic_name: str | None = None) -> int:
        if topic_name is not None:
            return len(self._channels.get(topic_name, ()))
        return sum(len(channels) for channels in self._channels.values())

    def publish(
        self,
        table: Table,
        kind: ChangeKind,
        *,
        new: Mapping[str, object] | None = None,
        old: Mapping[str, object] | None = None,
    ) -> None:
        row = old if kind is ChangeKind.DELETE else new
        if row is None:
            raise ValueError(f"{kind} change on {table} needs a row")
        for channels in list(self._channels.values()):
            for channel in list(channels):
                if channel.closed or not channel.topic.matches(table, row):
                    continue
                event = ChangeEvent(
                    topic=channel.topic.name,
                    kind=kind,
                    table=table,
                    new=dict(new) if new is not None else None,
                    old=dict(old) if old is not None else None,
                )
                channel.listener(event)

    def fail(self, topic_name: str, exc: BaseException) -> None:
        """Drop every channel on ``topic_name`` and report ``exc`` to its listener."""

        for channel in self._channels.pop(topic_name, []):
            channel.closed = True
            channel.on_error(exc)

    def close(self) -> None:
        self._closed = True
        for topic_name in list(self._channels):
            self.fail(topic_name, ChannelError("Push bus closed"))


if TYPE_CHECKING:
    _bus_check: PushBus = InProcessPushBus()
    _publisher_check: ChangePublisher = InProcessPushBus()
