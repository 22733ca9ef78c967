"""Ports for the authoritative row store and object storage."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from animesync.domain.model import Row, Table


@runtime_checkable
class RowStore(Protocol):
    """Async row storage with equality filters.

    Implementations raise :class:`~animesync.domain.errors.NotFoundError` from
    ``select_one`` when no row matches, :class:`~animesync.domain.errors.ConflictError`
    on unique-key violations and :class:`~animesync.domain.errors.RemoteError` for
    everything else.
    """

    async def select(
        self,
        table: Table,
        *,
        filters: Mapping[str, object] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        search: tuple[str, str] | None = None,
        limit: int | None = None,
    ) -> list[Row]: ...

    async def select_one(self, table: Table, *, filters: Mapping[str, object]) -> Row: ...

    async def insert(self, table: Table, row: Mapping[str, object]) -> Row: ...

    async def upsert(
        self,
        table: Table,
        row: Mapping[str, object],
        *,
        on_conflict: Sequence[str],
    ) -> Row: ...

    async def update(
        self,
        table: Table,
        values: Mapping[str, object],
        *,
        filters: Mapping[str, object],
    ) -> list[Row]: ...

    async def delete(self, table: Table, *, filters: Mapping[str, object]) -> None: ...


@runtime_checkable
class ObjectStorage(Protocol):
    """Public object storage for user images."""

    async def upload(self, path: str, content: bytes, *, content_type: str) -> str:
        """Store ``content`` at ``path`` and return its public URL."""
        ...


__all__ = ["ObjectStorage", "RowStore"]
