"""Ports for reading the external anime catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from animesync.domain.model import AnimeDetail, CatalogPage


@runtime_checkable
class CatalogSource(Protocol):
    """Read-only, page-numbered anime catalog."""

    async def fetch_top(self, page: int) -> CatalogPage: ...

    async def fetch_current_season(self, page: int) -> CatalogPage: ...

    async def fetch_anime(self, anime_id: int) -> AnimeDetail: ...


type PageFetcher = Callable[[int], Awaitable[CatalogPage]]

__all__ = ["CatalogSource", "PageFetcher"]
