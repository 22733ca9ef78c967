"""Public interface for the Jikan catalog adapter."""

from __future__ import annotations

from .client import CatalogAPIError, JikanCatalog
from .schema import AnimeListResponse, AnimeResponse, JikanAnime
from .translator import parse_detail, parse_page, parse_summary

__all__ = [
    "AnimeListResponse",
    "AnimeResponse",
    "CatalogAPIError",
    "JikanAnime",
    "JikanCatalog",
    "parse_detail",
    "parse_page",
    "parse_summary",
]
