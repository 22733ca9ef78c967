"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class InteractionStatus(StrEnum):
    WATCHED = "watched"
    FAVORITE = "favorite"


class Table(StrEnum):
    """Backing-store tables the client reads and writes."""

    POSTS = "posts"
    COMMENTS = "comments"
    PROFILES = "profiles"
    NOTIFICATIONS = "notifications"
    INTERACTIONS = "user_anime_interactions"
    BOOKMARKS = "bookmarks"


class ChangeKind(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SortField(StrEnum):
    CREATED_AT = "created_at"
    UPVOTES = "upvotes"
