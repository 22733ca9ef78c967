"""Factories for domain rows used across tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from animesync.domain.model import Comment, Notification, Post

USER_ID = "user-1"
BASE_TIME = datetime(2024, 4, 1, 12, 0, tzinfo=UTC)


def at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


def make_post(
    post_id: str = "post-1",
    *,
    user_id: str = "author",
    likes: tuple[str, ...] = (),
    upvotes: int = 0,
    minutes: int = 0,
) -> Post:
    return Post(
        id=post_id,
        title=f"Thoughts on {post_id}",
        content="Spoilers ahead",
        user_id=user_id,
        likes=likes,
        upvotes=upvotes,
        created_at=at(minutes),
    )


def make_comment(
    comment_id: str,
    *,
    post_id: str = "post-1",
    user_id: str = "reader",
    minutes: int = 0,
    content: str = "Great episode",
) -> Comment:
    return Comment(
        id=comment_id,
        post_id=post_id,
        user_id=user_id,
        content=content,
        created_at=at(minutes),
    )


def make_notification(notification_id: str, *, minutes: int = 0) -> Notification:
    return Notification(
        id=notification_id, message=f"Notice {notification_id}", created_at=at(minutes)
    )
