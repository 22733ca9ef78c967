"""Optimistic mutations: local prediction plus the backing write.

Each mutation owns one cache cell (its ``key``). The engine reads the cell,
asks the mutation for the predicted value, writes it back, and later asks the
mutation to persist the prediction.

Likes, upvotes and the editable text of a post are separate cells, so rolling
one of them back never undoes a concurrent change to another.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, ClassVar

from animesync.domain.errors import ValidationError
from animesync.domain.model import Table, utcnow
from animesync.domain.sync.interactions import next_status

if TYPE_CHECKING:
    from animesync.domain.model import Comment, InteractionStatus, Post
    from animesync.domain.ports import RowStore
    from animesync.domain.sync.cache import LocalCache

type CacheKey = tuple[str, ...]


def post_key(post_id: str) -> CacheKey:
    return ("post", post_id)


def post_field_key(post_id: str, cell: str) -> CacheKey:
    return ("post", post_id, cell)


def comment_key(post_id: str, comment_id: str) -> CacheKey:
    return ("comment", post_id, comment_id)


def interaction_key(anime_id: int) -> CacheKey:
    return ("interaction", str(anime_id))


def bookmark_key(post_id: str) -> CacheKey:
    return ("bookmark", post_id)


class Mutation[T](ABC):
    """A local state change with a defined backing write."""

    failure_message: str = "Update failed"

    @property
    @abstractmethod
    def key(self) -> CacheKey: ...

    @abstractmethod
    def read(self, cache: LocalCache) -> T: ...

    @abstractmethod
    def compute(self, current: T) -> T: ...

    @abstractmethod
    def write(self, cache: LocalCache, value: T) -> None: ...

    @abstractmethod
    async def persist(self, store: RowStore, predicted: T) -> None: ...

    def validate(self, current: T) -> None:  # noqa: B027
        """Raise :class:`ValidationError` when the mutation may not be applied."""


class _PostMutation(Mutation["Post | None"], ABC):
    post_id: str

    @property
    def key(self) -> CacheKey:
        return post_key(self.post_id)

    def read(self, cache: LocalCache) -> Post | None:
        return cache.posts.get(self.post_id)

    def write(self, cache: LocalCache, value: Post | None) -> None:
        if value is None:
            cache.posts.pop(self.post_id, None)
        else:
            cache.posts[self.post_id] = value

    def validate(self, current: Post | None) -> None:
        self._loaded(current)

    def _loaded(self, value: Post | None) -> Post:
        if value is None:
            raise ValidationError(f"Post {self.post_id} is not loaded")
        return value


class _PostFieldMutation(_PostMutation, ABC):
    """Changes some fields of a loaded post and only ever writes those fields.

    The snapshot is still the whole post as read, but writing it back copies
    just ``fields`` onto whatever post is cached at that moment. A post that
    has left the cache stays gone.
    """

    cell: ClassVar[str]
    fields: ClassVar[tuple[str, ...]]

    @property
    def key(self) -> CacheKey:
        return post_field_key(self.post_id, self.cell)

    def write(self, cache: LocalCache, value: Post | None) -> None:
        current = cache.posts.get(self.post_id)
        if current is None or value is None:
            return
        cache.posts[self.post_id] = replace(
            current, **{name: getattr(value, name) for name in self.fields}
        )


@dataclass(slots=True)
class ToggleLike(_PostFieldMutation):
    cell: ClassVar[str] = "likes"
    fields: ClassVar[tuple[str, ...]] = ("likes",)

    post_id: str
    user_id: str
    failure_message: str = "Failed to update like"

    def compute(self, current: Post | None) -> Post | None:
        return self._loaded(current).with_like_toggled(self.user_id)

    async def persist(self, store: RowStore, predicted: Post | None) -> None:
        likes = self._loaded(predicted).likes
        await store.update(
            Table.POSTS, {"likes": list(likes)}, filters={"id": self.post_id}
        )


@dataclass(slots=True)
class Upvote(_PostFieldMutation):
    cell: ClassVar[str] = "upvotes"
    fields: ClassVar[tuple[str, ...]] = ("upvotes",)

    post_id: str
    failure_message: str = "Failed to upvote post"

    def compute(self, current: Post | None) -> Post | None:
        return self._loaded(current).with_upvote()

    async def persist(self, store: RowStore, predicted: Post | None) -> None:
        upvotes = self._loaded(predicted).upvotes
        await store.update(
            Table.POSTS, {"upvotes": upvotes}, filters={"id": self.post_id}
        )


@dataclass(slots=True)
class EditPost(_PostFieldMutation):
    cell: ClassVar[str] = "text"
    fields: ClassVar[tuple[str, ...]] = ("title", "content", "image_url")

    post_id: str
    user_id: str
    title: str | None = None
    content: str | None = None
    image_url: str | None = None
    failure_message: str = "Failed to update post"

    def validate(self, current: Post | None) -> None:
        if self._loaded(current).user_id != self.user_id:
            raise ValidationError("Only the author can edit a post")
        if self.title is not None and not self.title.strip():
            raise ValidationError("Title must not be empty")

    def compute(self, current: Post | None) -> Post | None:
        return self._loaded(current).with_edits(
            title=self.title, content=self.content, image_url=self.image_url
        )

    async def persist(self, store: RowStore, predicted: Post | None) -> None:
        post = self._loaded(predicted)
        await store.update(
            Table.POSTS,
            {
                "title": post.title,
                "content": post.content,
                "image_url": post.image_url,
            },
            filters={"id": self.post_id, "user_id": self.user_id},
        )


@dataclass(slots=True)
class DeletePost(_PostMutation):
    post_id: str
    user_id: str
    failure_message: str = "Failed to delete post"

    def validate(self, current: Post | None) -> None:
        if self._loaded(current).user_id != self.user_id:
            raise ValidationError("Only the author can delete a post")

    def compute(self, current: Post | None) -> Post | None:
        return None

    async def persist(self, store: RowStore, predicted: Post | None) -> None:
        await store.delete(Table.POSTS, filters={"id": self.post_id, "user_id": self.user_id})


@dataclass(slots=True)
class CreatePost(_PostMutation):
    post: Post
    failure_message: str = "Failed to create post"

    @property
    def post_id(self) -> str:  # type: ignore[override]
        return self.post.id

    def validate(self, current: Post | None) -> None:
        if current is not None:
            raise ValidationError(f"Post {self.post.id} already exists")
        if not self.post.title.strip():
            raise ValidationError("Title must not be empty")

    def compute(self, current: Post | None) -> Post | None:
        return self.post

    async def persist(self, store: RowStore, predicted: Post | None) -> None:
        await store.insert(Table.POSTS, self.post.to_row())


@dataclass(slots=True)
class ToggleBookmark(Mutation[bool]):
    user_id: str
    post_id: str
    failure_message: str = "Failed to update bookmark"

    @property
    def key(self) -> CacheKey:
        return bookmark_key(self.post_id)

    def read(self, cache: LocalCache) -> bool:
        return self.post_id in cache.bookmarks

    def compute(self, current: bool) -> bool:  # noqa: FBT001
        return not current

    def write(self, cache: LocalCache, value: bool) -> None:  # noqa: FBT001
        if value:
            cache.bookmarks.add(self.post_id)
        else:
            cache.bookmarks.discard(self.post_id)

    async def persist(self, store: RowStore, predicted: bool) -> None:  # noqa: FBT001
        filters = {"user_id": self.user_id, "post_id": self.post_id}
        if predicted:
            await store.upsert(
                Table.BOOKMARKS,
                {**filters, "created_at": utcnow().isoformat()},
                on_conflict=("user_id", "post_id"),
            )
        else:
            await store.delete(Table.BOOKMARKS, filters=filters)


@dataclass(slots=True)
class SetInteraction(Mutation["InteractionStatus | None"]):
    user_id: str
    anime_id: int
    requested: InteractionStatus
    failure_message: str = "Failed to update anime status"

    @property
    def key(self) -> CacheKey:
        return interaction_key(self.anime_id)

    def read(self, cache: LocalCache) -> InteractionStatus | None:
        return cache.interactions.status_of(self.anime_id)

    def compute(self, current: InteractionStatus | None) -> InteractionStatus | None:
        return next_status(current, self.requested)

    def write(self, cache: LocalCache, value: InteractionStatus | None) -> None:
        cache.interactions.put(self.anime_id, value)

    async def persist(self, store: RowStore, predicted: InteractionStatus | None) -> None:
        filters = {"user_id": self.user_id, "anime_id": self.anime_id}
        if predicted is None:
            await store.delete(Table.INTERACTIONS, filters=filters)
        else:
            await store.upsert(
                Table.INTERACTIONS,
                {**filters, "status": str(predicted)},
                on_conflict=("user_id", "anime_id"),
            )


@dataclass(slots=True)
class CreateComment(Mutation["Comment | None"]):
    """Insert a comment whose id is generated locally.

    The id travels with the insert, so the push echo carries the same id and
    the reconciler recognises it as a confirmation.
    """

    comment: Comment
    failure_message: str = "Failed to post comment"

    @property
    def key(self) -> CacheKey:
        return comment_key(self.comment.post_id, self.comment.id)

    def read(self, cache: LocalCache) -> Comment | None:
        return cache.comments_for(self.comment.post_id).get(self.comment.id)

    def validate(self, current: Comment | None) -> None:
        if not self.comment.content.strip():
            raise ValidationError("Comment must not be empty")

    def compute(self, current: Comment | None) -> Comment | None:
        return current or self.comment

    def write(self, cache: LocalCache, value: Comment | None) -> None:
        collection = cache.comments_for(self.comment.post_id)
        if value is None:
            collection.remove(self.comment.id)
        else:
            collection.upsert(value)

    async def persist(self, store: RowStore, predicted: Comment | None) -> None:
        await store.insert(Table.COMMENTS, self.comment.to_row())


@dataclass(slots=True)
class DeleteComment(Mutation["Comment | None"]):
    post_id: str
    comment_id: str
    user_id: str
    failure_message: str = "Failed to delete comment"

    @property
    def key(self) -> CacheKey:
        return comment_key(self.post_id, self.comment_id)

    def read(self, cache: LocalCache) -> Comment | None:
        return cache.comments_for(self.post_id).get(self.comment_id)

    def validate(self, current: Comment | None) -> None:
        if current is None:
            raise ValidationError(f"Comment {self.comment_id} is not loaded")
        if current.user_id != self.user_id:
            raise ValidationError("Only the author can delete a comment")

    def compute(self, current: Comment | None) -> Comment | None:
        return None

    def write(self, cache: LocalCache, value: Comment | None) -> None:
        collection = cache.comments_for(self.post_id)
        if value is None:
            collection.remove(self.comment_id)
        else:
            collection.upsert(value)

    async def persist(self, store: RowStore, predicted: Comment | None) -> None:
        await store.delete(
            Table.COMMENTS, filters={"id": self.comment_id, "user_id": self.user_id}
        )
