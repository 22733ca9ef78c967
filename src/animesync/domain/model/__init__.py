"""Public domain model surface."""

from __future__ import annotations

from animesync.domain.model._internal import format_timestamp, new_id, parse_timestamp, utcnow
from animesync.domain.model.catalog import AnimeDetail, AnimeSummary, CatalogPage
from animesync.domain.model.content import (
    Bookmark,
    Comment,
    Interaction,
    Notification,
    Post,
    Profile,
    Row,
)
from animesync.domain.model.enums import ChangeKind, InteractionStatus, SortField, Table

__all__ = [
    "AnimeDetail",
    "AnimeSummary",
    "Bookmark",
    "CatalogPage",
    "ChangeKind",
    "Comment",
    "Interaction",
    "InteractionStatus",
    "Notification",
    "Post",
    "Profile",
    "Row",
    "SortField",
    "Table",
    "format_timestamp",
    "new_id",
    "parse_timestamp",
    "utcnow",
]
