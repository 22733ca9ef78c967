"""Translate Jikan payloads into catalog records."""

from __future__ import annotations

from typing import TYPE_CHECKING

from animesync.domain.model import AnimeDetail, AnimeSummary, CatalogPage

if TYPE_CHECKING:
    from .schema import AnimeListResponse, Images, JikanAnime


def _image_url(images: Images | None) -> str | None:
    if images is None:
        return None
    for image_set in (images.jpg, images.webp):
        if image_set is None:
            continue
        url = image_set.large_image_url or image_set.image_url or image_set.small_image_url
        if url:
            return url
    return None


def _aired(anime: JikanAnime) -> str | None:
    return anime.aired.string if anime.aired is not None else None


def parse_summary(anime: JikanAnime) -> AnimeSummary:
    return AnimeSummary(
        id=anime.mal_id,
        title=anime.title,
        synopsis=anime.synopsis,
        rating=anime.score,
        image_url=_image_url(anime.images),
        episodes=anime.episodes,
        status=anime.status,
        aired=_aired(anime),
        genres=tuple(genre.name for genre in anime.genres),
    )


def parse_detail(anime: JikanAnime) -> AnimeDetail:
    return AnimeDetail(
        id=anime.mal_id,
        title=anime.title,
        synopsis=anime.synopsis,
        rating=anime.score,
        image_url=_image_url(anime.images),
        episodes=anime.episodes,
        status=anime.status,
        aired=_aired(anime),
        genres=tuple(genre.name for genre in anime.genres),
        title_english=anime.title_english,
        media_type=anime.type,
        duration=anime.duration,
        rank=anime.rank,
        popularity=anime.popularity,
        studios=tuple(studio.name for studio in anime.studios),
        trailer_url=anime.trailer.url if anime.trailer is not None else None,
    )


def parse_page(page: int, payload: AnimeListResponse) -> CatalogPage:
    return CatalogPage(
        page=page,
        items=tuple(parse_summary(anime) for anime in payload.data),
        has_next_page=payload.pagination.has_next_page,
    )
