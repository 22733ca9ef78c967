"""Tests for the SQLAlchemy Core row store."""

from __future__ import annotations

import asyncio

import pytest

from animesync.adapters.local_bus import InProcessPushBus  # noqa: TC001
from animesync.adapters.sqlalchemy import SqlAlchemyRowStore, StartupError, shutdown
from animesync.domain.errors import ConflictError, NotFoundError, RemoteError
from animesync.domain.model import ChangeKind, Post, Table
from animesync.domain.ports import ChangeEvent, Topic
from tests.support.builders import make_comment, make_post


def _record(bus: InProcessPushBus, topic: Topic) -> list[ChangeEvent]:
    events: list[ChangeEvent] = []
    bus.open_channel(topic, events.append, lambda exc: None)
    return events


def test_insert_round_trips_and_echoes(
    sqlite_store: SqlAlchemyRowStore, bus: InProcessPushBus
) -> None:
    events = _record(bus, Topic.post("post-1"))
    post = make_post(likes=("a", "b"), upvotes=2)

    stored = asyncio.run(sqlite_store.insert(Table.POSTS, post.to_row()))

    assert Post.from_row(stored) == post
    assert isinstance(stored["created_at"], str)
    assert [(event.kind, event.entity_id) for event in events] == [
        (ChangeKind.INSERT, "post-1")
    ]


def test_select_searches_orders_and_limits(sqlite_store: SqlAlchemyRowStore) -> None:
    async def scenario() -> list[str]:
        for post_id, title, upvotes in (
            ("p1", "Frieren finale", 3),
            ("p2", "Dungeon Meshi", 9),
            ("p3", "FRIEREN rewatch", 5),
            ("p4", "frieren OST", 1),
        ):
            row = make_post(post_id, upvotes=upvotes).to_row() | {"title": title}
            await sqlite_store.insert(Table.POSTS, row)
        rows = await sqlite_store.select(
            Table.POSTS,
            search=("title", "frieren"),
            order_by="upvotes",
            ascending=False,
            limit=2,
        )
        return [str(row["id"]) for row in rows]

    assert asyncio.run(scenario()) == ["p3", "p1"]


def test_select_one_and_duplicate_insert(sqlite_store: SqlAlchemyRowStore) -> None:
    async def scenario() -> None:
        await sqlite_store.insert(Table.POSTS, make_post().to_row())
        with pytest.raises(ConflictError):
            await sqlite_store.insert(Table.POSTS, make_post().to_row())
        with pytest.raises(NotFoundError):
            await sqlite_store.select_one(Table.POSTS, filters={"id": "missing"})
        found = await sqlite_store.select_one(Table.POSTS, filters={"id": "post-1"})
        assert found["title"] == "Thoughts on post-1"

    asyncio.run(scenario())


def test_upsert_inserts_then_updates(
    sqlite_store: SqlAlchemyRowStore, bus: InProcessPushBus
) -> None:
    kinds: list[ChangeKind] = []

    async def scenario() -> list[dict[str, object]]:
        key = {"user_id": "user-1", "anime_id": 7}
        for status in ("watched", "favorite"):
            await sqlite_store.upsert(
                Table.INTERACTIONS, {**key, "status": status}, on_conflict=("user_id", "anime_id")
            )
        return await sqlite_store.select(Table.INTERACTIONS, filters=key)

    original_publish = bus.publish

    def spy(table: Table, kind: ChangeKind, **rows: object) -> None:
        kinds.append(kind)
        original_publish(table, kind, **rows)  # type: ignore[arg-type]

    bus.publish = spy  # type: ignore[method-assign]
    rows = asyncio.run(scenario())

    assert rows == [{"user_id": "user-1", "anime_id": 7, "status": "favorite"}]
    assert kinds == [ChangeKind.INSERT, ChangeKind.UPDATE]


def test_upsert_requires_conflict_columns(sqlite_store: SqlAlchemyRowStore) -> None:
    with pytest.raises(RemoteError, match="conflict columns"):
        asyncio.run(
            sqlite_store.upsert(
                Table.INTERACTIONS, {"user_id": "u", "status": "watched"}, on_conflict=("anime_id",)
            )
        )


def test_update_returns_and_echoes_changed_rows(
    sqlite_store: SqlAlchemyRowStore, bus: InProcessPushBus
) -> None:
    events = _record(bus, Topic.post("post-1"))

    async def scenario() -> tuple[list[dict[str, object]], list[dict[str, object]]]:
        await sqlite_store.insert(Table.POSTS, make_post().to_row())
        updated = await sqlite_store.update(
            Table.POSTS, {"likes": ["user-1"]}, filters={"id": "post-1"}
        )
        untouched = await sqlite_store.update(
            Table.POSTS, {"upvotes": 4}, filters={"id": "post-1", "user_id": "someone-else"}
        )
        return updated, untouched

    updated, untouched = asyncio.run(scenario())

    assert [row["likes"] for row in updated] == [["user-1"]]
    assert untouched == []
    assert [event.kind for event in events] == [ChangeKind.INSERT, ChangeKind.UPDATE]


def test_delete_echoes_full_old_row_and_cascades(
    sqlite_store: SqlAlchemyRowStore, bus: InProcessPushBus
) -> None:
    events = _record(bus, Topic.comments("post-1"))

    async def scenario() -> list[dict[str, object]]:
        await sqlite_store.insert(Table.POSTS, make_post().to_row())
        await sqlite_store.insert(Table.COMMENTS, make_comment("c1").to_row())
        await sqlite_store.insert(Table.COMMENTS, make_comment("c2").to_row())
        await sqlite_store.delete(Table.COMMENTS, filters={"id": "c1"})
        await sqlite_store.delete(Table.POSTS, filters={"id": "post-1"})
        return await sqlite_store.select(Table.COMMENTS)

    remaining = asyncio.run(scenario())

    assert remaining == []
    delete = events[-1]
    assert delete.kind is ChangeKind.DELETE
    assert delete.old is not None
    assert delete.old["post_id"] == "post-1"
    assert delete.entity_id == "c1"


def test_constraint_violations_are_remote_errors(sqlite_store: SqlAlchemyRowStore) -> None:
    async def scenario() -> None:
        with pytest.raises(RemoteError) as excinfo:
            await sqlite_store.insert(Table.POSTS, make_post().to_row() | {"upvotes": -1})
        assert not isinstance(excinfo.value, ConflictError)
        with pytest.raises(RemoteError, match="Unknown column"):
            await sqlite_store.select(Table.POSTS, filters={"nope": 1})
        with pytest.raises(RemoteError):
            await sqlite_store.insert(Table.COMMENTS, make_comment("orphan").to_row())

    asyncio.run(scenario())


def test_store_requires_startup() -> None:
    shutdown()

    with pytest.raises(StartupError):
        SqlAlchemyRowStore()
