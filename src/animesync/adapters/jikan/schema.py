"""Pydantic models describing the Jikan v4 payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class JikanBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ImageSet(JikanBaseModel):
    image_url: str | None = None
    small_image_url: str | None = None
    large_image_url: str | None = None

    _normalize_urls = field_validator(
        "image_url", "small_image_url", "large_image_url", mode="before"
    )(_blank_to_none)


class Images(JikanBaseModel):
    jpg: ImageSet | None = None
    webp: ImageSet | None = None


class Aired(JikanBaseModel):
    from_: str | None = Field(default=None, alias="from")
    to: str | None = None
    string: str | None = None


class Trailer(JikanBaseModel):
    youtube_id: str | None = None
    url: str | None = None


class NamedResource(JikanBaseModel):
    mal_id: int
    name: str
    type: str | None = None


class JikanAnime(JikanBaseModel):
    mal_id: int
    title: str
    title_english: str | None = None
    type: str | None = None
    synopsis: str | None = None
    score: float | None = None
    episodes: int | None = None
    status: str | None = None
    duration: str | None = None
    rank: int | None = None
    popularity: int | None = None
    images: Images | None = None
    aired: Aired | None = None
    trailer: Trailer | None = None
    genres: list[NamedResource] = Field(default_factory=list)
    studios: list[NamedResource] = Field(default_factory=list)

    _normalize_text = field_validator("title_english", "synopsis", mode="before")(_blank_to_none)


class Pagination(JikanBaseModel):
    last_visible_page: int | None = None
    has_next_page: bool = False
    current_page: int | None = None


class AnimeListResponse(JikanBaseModel):
    pagination: Pagination = Field(default_factory=Pagination)
    data: list[JikanAnime] = Field(default_factory=list)


class AnimeResponse(JikanBaseModel):
    data: JikanAnime


class ErrorResponse(JikanBaseModel):
    status: int | None = None
    type: str | None = None
    message: str | None = None
    error: str | None = None
