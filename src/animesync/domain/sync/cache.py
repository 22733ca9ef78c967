"""The typed local cache that mirrors server rows for one scope."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from animesync.domain.sync.collection import OrderedById
from animesync.domain.sync.interactions import InteractionStore

if TYPE_CHECKING:
    from animesync.domain.model import Comment, Notification, Post, Profile


@dataclass(slots=True)
class LocalCache:
    """Reconciled client state.

    Only the scope that created the cache mutates it; the optimistic engine and
    the reconciler are its two writers.
    """

    user_id: str | None = None
    posts: dict[str, Post] = field(default_factory=dict)
    comments: dict[str, OrderedById[Comment]] = field(default_factory=dict)
    notifications: OrderedById[Notification] = field(default_factory=OrderedById)
    bookmarks: set[str] = field(default_factory=set)
    profiles: dict[str, Profile] = field(default_factory=dict)
    interactions: InteractionStore = field(init=False)

    def __post_init__(self) -> None:
        self.interactions = InteractionStore(self.user_id)

    def comments_for(self, post_id: str) -> OrderedById[Comment]:
        collection = self.comments.get(post_id)
        if collection is None:
            collection = OrderedById()
            self.comments[post_id] = collection
        return collection

    def find_comment(self, comment_id: str) -> Comment | None:
        for collection in self.comments.values():
            comment = collection.get(comment_id)
            if comment is not None:
                return comment
        return None

    def drop_post(self, post_id: str) -> Post | None:
        self.comments.pop(post_id, None)
        self.bookmarks.discard(post_id)
        return self.posts.pop(post_id, None)
