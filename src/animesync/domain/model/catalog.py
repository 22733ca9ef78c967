"""Read-only anime catalog records."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True, kw_only=True)
class AnimeSummary:
    id: int
    title: str
    synopsis: str | None = None
    rating: float | None = None
    image_url: str | None = None
    episodes: int | None = None
    status: str | None = None
    aired: str | None = None
    genres: tuple[str, ...] = ()

    @property
    def genre_label(self) -> str:
        return ", ".join(self.genres)


@dataclass(frozen=True, slots=True, kw_only=True)
class AnimeDetail(AnimeSummary):
    title_english: str | None = None
    media_type: str | None = None
    duration: str | None = None
    rank: int | None = None
    popularity: int | None = None
    studios: tuple[str, ...] = ()
    trailer_url: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CatalogPage:
    page: int
    items: tuple[AnimeSummary, ...] = field(default_factory=tuple)
    has_next_page: bool = False
