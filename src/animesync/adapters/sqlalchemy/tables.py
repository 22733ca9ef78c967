"""SQLAlchemy Core tables mirroring the backing-store schema."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    TypeDecorator,
)

from animesync.domain.model import Table as TableName
from animesync.domain.model import new_id, utcnow

if TYPE_CHECKING:
    from sqlalchemy import Dialect

metadata = MetaData()


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


profiles_table = Table(
    str(TableName.PROFILES),
    metadata,
    Column("id", String(64), primary_key=True),
    Column("username", String(255), nullable=False),
    Column("avatar_url", Text, nullable=True),
    Column("bio", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
)

posts_table = Table(
    str(TableName.POSTS),
    metadata,
    Column("id", String(64), primary_key=True, default=new_id),
    Column("title", Text, nullable=False),
    Column("content", Text, nullable=False, default=""),
    Column("image_url", Text, nullable=True),
    Column("likes", JSON, nullable=False, default=list),
    Column("upvotes", Integer, nullable=False, default=0),
    Column("user_id", String(64), nullable=False, index=True),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    CheckConstraint("upvotes >= 0", name="ck_posts_upvotes_non_negative"),
)

comments_table = Table(
    str(TableName.COMMENTS),
    metadata,
    Column("id", String(64), primary_key=True, default=new_id),
    Column(
        "post_id",
        String(64),
        ForeignKey(f"{TableName.POSTS}.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("user_id", String(64), nullable=False),
    Column("content", Text, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
)

notifications_table = Table(
    str(TableName.NOTIFICATIONS),
    metadata,
    Column("id", String(64), primary_key=True, default=new_id),
    Column("message", Text, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
)

interactions_table = Table(
    str(TableName.INTERACTIONS),
    metadata,
    Column("user_id", String(64), nullable=False),
    Column("anime_id", Integer, nullable=False),
    Column("status", String(16), nullable=False),
    PrimaryKeyConstraint("user_id", "anime_id", name="pk_user_anime_interactions"),
    CheckConstraint("status IN ('watched', 'favorite')", name="ck_interactions_status"),
)

bookmarks_table = Table(
    str(TableName.BOOKMARKS),
    metadata,
    Column("user_id", String(64), nullable=False),
    Column(
        "post_id",
        String(64),
        ForeignKey(f"{TableName.POSTS}.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    PrimaryKeyConstraint("user_id", "post_id", name="pk_bookmarks"),
)

TABLES: dict[TableName, Table] = {
    TableName.PROFILES: profiles_table,
    TableName.POSTS: posts_table,
    TableName.COMMENTS: comments_table,
    TableName.NOTIFICATIONS: notifications_table,
    TableName.INTERACTIONS: interactions_table,
    TableName.BOOKMARKS: bookmarks_table,
}
