"""Read paths for the social feed.

Every loader returns an :data:`~animesync.domain.outcome.Outcome` so callers
can show an inline error instead of unwinding their scope.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from animesync.config.sync import DEFAULT_FEED_LIMIT
from animesync.domain.errors import RemoteError
from animesync.domain.model import (
    Bookmark,
    Comment,
    Interaction,
    Notification,
    Post,
    SortField,
    Table,
)
from animesync.domain.outcome import BOUNDARY_ERRORS, Success, failure_from

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from animesync.domain.outcome import Outcome
    from animesync.domain.ports import RowStore

log = getLogger(__name__)


def _parse_rows[T](
    rows: Iterable[Mapping[str, object]],
    parse: Callable[[Mapping[str, object]], T],
    table: Table,
) -> list[T]:
    parsed: list[T] = []
    for row in rows:
        try:
            parsed.append(parse(row))
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("Skipping malformed %s row %s: %s", table, row.get("id"), exc)
    return parsed


async def load_feed(
    store: RowStore,
    *,
    search: str | None = None,
    sort_by: SortField = SortField.CREATED_AT,
    ascending: bool = False,
    limit: int = DEFAULT_FEED_LIMIT,
) -> Outcome[list[Post]]:
    """Posts ordered by ``sort_by``, optionally filtered by a title substring."""

    term = search.strip() if search else ""
    try:
        rows = await store.select(
            Table.POSTS,
            order_by=str(sort_by),
            ascending=ascending,
            search=("title", term) if term else None,
            limit=limit,
        )
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, "Failed to load posts")
    return Success(_parse_rows(rows, Post.from_row, Table.POSTS))


async def load_post(store: RowStore, post_id: str) -> Outcome[Post]:
    try:
        row = await store.select_one(Table.POSTS, filters={"id": post_id})
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, f"Failed to load post {post_id}")
    try:
        post = Post.from_row(row)
    except (KeyError, TypeError, ValueError) as exc:
        malformed = RemoteError(f"Malformed post row: {exc}")
        return failure_from(malformed, f"Failed to load post {post_id}")
    return Success(post)


async def load_comments(store: RowStore, post_id: str) -> Outcome[list[Comment]]:
    try:
        rows = await store.select(
            Table.COMMENTS, filters={"post_id": post_id}, order_by="created_at"
        )
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, f"Failed to load comments for post {post_id}")
    return Success(_parse_rows(rows, Comment.from_row, Table.COMMENTS))


async def load_notifications(
    store: RowStore, *, limit: int = DEFAULT_FEED_LIMIT
) -> Outcome[list[Notification]]:
    try:
        rows = await store.select(
            Table.NOTIFICATIONS, order_by="created_at", ascending=False, limit=limit
        )
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, "Failed to load notifications")
    return Success(_parse_rows(rows, Notification.from_row, Table.NOTIFICATIONS))


async def load_interactions(store: RowStore, user_id: str) -> Outcome[list[Interaction]]:
    try:
        rows = await store.select(Table.INTERACTIONS, filters={"user_id": user_id})
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, "Failed to load anime statuses")
    return Success(_parse_rows(rows, Interaction.from_row, Table.INTERACTIONS))


async def load_bookmarks(store: RowStore, user_id: str) -> Outcome[list[Bookmark]]:
    try:
        rows = await store.select(
            Table.BOOKMARKS, filters={"user_id": user_id}, order_by="created_at", ascending=False
        )
    except BOUNDARY_ERRORS as exc:
        return failure_from(exc, "Failed to load bookmarks")
    return Success(_parse_rows(rows, Bookmark.from_row, Table.BOOKMARKS))
