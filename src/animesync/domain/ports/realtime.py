"""Ports for the push bus that echoes row changes."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from animesync.domain.model import ChangeKind, Table


@dataclass(frozen=True, slots=True)
class Topic:
    """A named push stream scoped to one resource."""

    name: str
    table: Table
    filters: Mapping[str, object] = field(default_factory=dict, hash=False, compare=False)

    @classmethod
    def comments(cls, post_id: str) -> Topic:
        return cls(name=f"comments:{post_id}", table=Table.COMMENTS, filters={"post_id": post_id})

    @classmethod
    def post(cls, post_id: str) -> Topic:
        return cls(name=f"posts:{post_id}", table=Table.POSTS, filters={"id": post_id})

    @classmethod
    def notifications(cls) -> Topic:
        return cls(name="notifications", table=Table.NOTIFICATIONS)

    def matches(self, table: Table, row: Mapping[str, object]) -> bool:
        if table is not self.table:
            return False
        return all(str(row.get(key)) == str(value) for key, value in self.filters.items())


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """One row change as delivered by the push bus.

    ``new`` carries the row after inserts and updates, ``old`` the row (or at
    least its key) before updates and deletes.
    """

    topic: str
    kind: ChangeKind
    table: Table
    new: Mapping[str, object] | None = None
    old: Mapping[str, object] | None = None

    @property
    def row(self) -> Mapping[str, object]:
        row = self.new if self.kind is not ChangeKind.DELETE else self.old
        if row is None:
            raise ValueError(f"{self.kind} event on {self.topic} carries no row")
        return row

    @property
    def entity_id(self) -> str:
        value = self.row.get("id")
        if value is None:
            raise ValueError(f"{self.kind} event on {self.topic} carries no id")
        return str(value)


EventListener = Callable[[ChangeEvent], None]
ErrorListener = Callable[[BaseException], None]


@runtime_checkable
class Channel(Protocol):
    def close(self) -> None: ...


@runtime_checkable
class PushBus(Protocol):
    """Subscribe-by-topic event bus with at-least-once delivery."""

    def open_channel(
        self,
        topic: Topic,
        listener: EventListener,
        on_error: ErrorListener,
    ) -> Channel: ...


@runtime_checkable
class ChangePublisher(Protocol):
    """Sink that row stores notify after each committed write."""

    def publish(
        self,
        table: Table,
        kind: ChangeKind,
        *,
        new: Mapping[str, object] | None = None,
        old: Mapping[str, object] | None = None,
    ) -> None: ...


__all__ = [
    "ChangeEvent",
    "ChangePublisher",
    "Channel",
    "ErrorListener",
    "EventListener",
    "PushBus",
    "Topic",
]
