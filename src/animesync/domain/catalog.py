"""Catalog browsing built on :class:`CatalogPaginator`."""

from __future__ import annotations

from typing import TYPE_CHECKING

from animesync.domain.outcome import BOUNDARY_ERRORS, Success, failure_from, invalid
from animesync.domain.sync.paginator import CatalogPaginator

if TYPE_CHECKING:
    from animesync.domain.model import AnimeDetail
    from animesync.domain.outcome import Outcome
    from animesync.domain.ports import CatalogSource
    from animesync.domain.sync.interactions import InteractionStore


def top_anime(
    source: CatalogSource, *, interactions: InteractionStore | None = None
) -> CatalogPaginator:
    return CatalogPaginator(source.fetch_top, interactions=interactions, name="top anime")


def current_season(
    source: CatalogSource, *, interactions: InteractionStore | None = None
) -> CatalogPaginator:
    return CatalogPaginator(
        source.fetch_current_season, interactions=interactions, name="current season"
    )


async def fetch_detail(source: CatalogSource, anime_id: int) -> Outcome[AnimeDetail]:
    if anime_id < 1:
        return invalid(f"Invalid anime id: {anime_id}")
    try:
        return Success(await source.fetch_anime(anime_id))
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, f"Failed to load anime {anime_id}")
