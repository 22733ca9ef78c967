"""Social content rows: posts, comments, notifications, profiles, bookmarks."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from animesync.domain.model._internal import (
    format_timestamp,
    new_id,
    optional_str,
    parse_timestamp,
    require,
    utcnow,
)
from animesync.domain.model.enums import InteractionStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

type Row = dict[str, object]


def _ordered_unique(values: Iterable[object]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(str(value), None)
    return tuple(seen)


@dataclass(frozen=True, slots=True, kw_only=True)
class Post:
    """A discussion post.

    ``likes`` is an ordered set of user ids; the like counter is always derived
    from it so the two can never disagree.
    """

    id: str = field(default_factory=new_id)
    title: str
    content: str = ""
    user_id: str
    image_url: str | None = None
    likes: tuple[str, ...] = ()
    upvotes: int = 0
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.upvotes < 0:
            raise ValueError("upvotes must be non-negative")
        object.__setattr__(self, "likes", _ordered_unique(self.likes))

    @property
    def like_count(self) -> int:
        return len(self.likes)

    def is_liked_by(self, user_id: str) -> bool:
        return user_id in self.likes

    def with_like_toggled(self, user_id: str) -> Post:
        if user_id in self.likes:
            return replace(self, likes=tuple(uid for uid in self.likes if uid != user_id))
        return replace(self, likes=(*self.likes, user_id))

    def with_upvote(self) -> Post:
        return replace(self, upvotes=self.upvotes + 1)

    def with_edits(
        self,
        *,
        title: str | None = None,
        content: str | None = None,
        image_url: str | None = None,
    ) -> Post:
        return replace(
            self,
            title=self.title if title is None else title,
            content=self.content if content is None else content,
            image_url=self.image_url if image_url is None else (image_url or None),
        )

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> Post:
        raw_likes = row.get("likes") or ()
        if not isinstance(raw_likes, list | tuple):
            raise ValueError("Post likes must be a list of user ids")
        return cls(
            id=str(require(row, "id")),
            title=str(row.get("title") or ""),
            content=str(row.get("content") or ""),
            user_id=str(require(row, "user_id")),
            image_url=optional_str(row, "image_url"),
            likes=_ordered_unique(raw_likes),
            upvotes=int(row.get("upvotes") or 0),  # type: ignore[arg-type]
            created_at=parse_timestamp(require(row, "created_at")),
        )

    def to_row(self) -> Row:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "image_url": self.image_url,
            "likes": list(self.likes),
            "upvotes": self.upvotes,
            "user_id": self.user_id,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True, slots=True, kw_only=True)
class Comment:
    id: str = field(default_factory=new_id)
    post_id: str
    user_id: str
    content: str
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> Comment:
        return cls(
            id=str(require(row, "id")),
            post_id=str(require(row, "post_id")),
            user_id=str(require(row, "user_id")),
            content=str(row.get("content") or ""),
            created_at=parse_timestamp(require(row, "created_at")),
        )

    def to_row(self) -> Row:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "user_id": self.user_id,
            "content": self.content,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True, slots=True, kw_only=True)
class Notification:
    id: str = field(default_factory=new_id)
    message: str
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> Notification:
        return cls(
            id=str(require(row, "id")),
            message=str(row.get("message") or ""),
            created_at=parse_timestamp(require(row, "created_at")),
        )

    def to_row(self) -> Row:
        return {
            "id": self.id,
            "message": self.message,
            "created_at": format_timestamp(self.created_at),
        }


DEFAULT_AVATAR_URL = "https://i.imgur.com/1Q9ZQ9r.png"
DEFAULT_BIO = "New anime enthusiast"


@dataclass(frozen=True, slots=True, kw_only=True)
class Profile:
    id: str
    username: str
    avatar_url: str | None = None
    bio: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def default_for(cls, user_id: str, email: str | None) -> Profile:
        """Profile created the first time a signed-in user has none."""

        username = email.split("@", 1)[0] if email else f"user-{user_id[:8]}"
        return cls(id=user_id, username=username, avatar_url=DEFAULT_AVATAR_URL, bio=DEFAULT_BIO)

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> Profile:
        created = row.get("created_at")
        return cls(
            id=str(require(row, "id")),
            username=str(row.get("username") or ""),
            avatar_url=optional_str(row, "avatar_url"),
            bio=optional_str(row, "bio"),
            created_at=parse_timestamp(created) if created is not None else utcnow(),
        )

    def to_row(self) -> Row:
        return {
            "id": self.id,
            "username": self.username,
            "avatar_url": self.avatar_url,
            "bio": self.bio,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True, slots=True, kw_only=True)
class Bookmark:
    user_id: str
    post_id: str
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> Bookmark:
        created = row.get("created_at")
        return cls(
            user_id=str(require(row, "user_id")),
            post_id=str(require(row, "post_id")),
            created_at=parse_timestamp(created) if created is not None else utcnow(),
        )

    def to_row(self) -> Row:
        return {
            "user_id": self.user_id,
            "post_id": self.post_id,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass(frozen=True, slots=True, kw_only=True)
class Interaction:
    """One row of ``user_anime_interactions``; absence means no status."""

    user_id: str
    anime_id: int
    status: InteractionStatus

    @property
    def key(self) -> tuple[str, int]:
        return (self.user_id, self.anime_id)

    @classmethod
    def from_row(cls, row: Mapping[str, object]) -> Interaction:
        return cls(
            user_id=str(require(row, "user_id")),
            anime_id=int(require(row, "anime_id")),  # type: ignore[arg-type]
            status=InteractionStatus(str(require(row, "status"))),
        )

    def to_row(self) -> Row:
        return {"user_id": self.user_id, "anime_id": self.anime_id, "status": str(self.status)}
