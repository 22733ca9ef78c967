"""Id-keyed collections kept in creation order."""

from __future__ import annotations

from bisect import bisect_left, insort
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from datetime import datetime


class Timestamped(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def created_at(self) -> datetime: ...


class OrderedById[T: Timestamped]:
    """Entities ordered by ``(created_at, id)`` with at most one entry per id.

    Arrival order does not matter: an entity that arrives late is slotted in by
    its creation timestamp, and ties are broken by id so the order is stable.
    """

    __slots__ = ("_by_id", "_order")

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._by_id: dict[str, T] = {}
        self._order: list[tuple[datetime, str]] = []
        for item in items:
            self.insert(item)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[T]:
        for _, entity_id in self._order:
            yield self._by_id[entity_id]

    def get(self, entity_id: str) -> T | None:
        return self._by_id.get(entity_id)

    def ids(self) -> list[str]:
        return [entity_id for _, entity_id in self._order]

    def snapshot(self) -> tuple[T, ...]:
        return tuple(self)

    def insert(self, item: T) -> bool:
        """Add ``item`` unless its id is already present. Returns whether it was added."""

        if item.id in self._by_id:
            return False
        self._by_id[item.id] = item
        insort(self._order, (item.created_at, item.id))
        return True

    def upsert(self, item: T) -> bool:
        """Insert or replace ``item``. Returns whether the stored value changed."""

        existing = self._by_id.get(item.id)
        if existing is None:
            return self.insert(item)
        if existing == item:
            return False
        if existing.created_at != item.created_at:
            self._discard_order(existing)
            insort(self._order, (item.created_at, item.id))
        self._by_id[item.id] = item
        return True

    def remove(self, entity_id: str) -> T | None:
        existing = self._by_id.pop(entity_id, None)
        if existing is not None:
            self._discard_order(existing)
        return existing

    def _discard_order(self, item: T) -> None:
        key = (item.created_at, item.id)
        index = bisect_left(self._order, key)
        if index < len(self._order) and self._order[index] == key:
            del self._order[index]
