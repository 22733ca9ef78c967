from __future__ import annotations

import asyncio

from animesync.adapters.local_bus import InProcessPushBus
from animesync.domain.model import ChangeKind, InteractionStatus, Table
from animesync.domain.outcome import Failure
from animesync.domain.ports import ChangeEvent, Topic
from animesync.domain.sync import (
    CreateComment,
    DeletePost,
    LocalCache,
    OptimisticMutationEngine,
    Reconciler,
    ToggleLike,
)
from tests.support.builders import USER_ID, make_comment, make_notification, make_post
from tests.support.fakes import FakeRowStore, remote_error


def _event(
    table: Table,
    kind: ChangeKind,
    row: dict[str, object],
    *,
    topic: str = "test",
) -> ChangeEvent:
    if kind is ChangeKind.DELETE:
        return ChangeEvent(topic=topic, kind=kind, table=table, old=row)
    return ChangeEvent(topic=topic, kind=kind, table=table, new=row)


def test_repeated_insert_is_applied_once() -> None:
    cache = LocalCache(user_id=USER_ID)
    reconciler = Reconciler(cache)
    row = make_comment("c1").to_row()

    assert reconciler.on_event(_event(Table.COMMENTS, ChangeKind.INSERT, row)) is True
    assert reconciler.on_event(_event(Table.COMMENTS, ChangeKind.INSERT, row)) is False

    assert cache.comments_for("post-1").ids() == ["c1"]
    assert reconciler.stats.applied == 1
    assert reconciler.stats.duplicates == 1


def test_out_of_order_comments_end_in_creation_order() -> None:
    cache = LocalCache(user_id=USER_ID)
    reconciler = Reconciler(cache)

    for comment_id, minutes in (("c3", 3), ("c1", 1), ("c2", 2)):
        row = make_comment(comment_id, minutes=minutes).to_row()
        reconciler.on_event(_event(Table.COMMENTS, ChangeKind.INSERT, row))

    assert cache.comments_for("post-1").ids() == ["c1", "c2", "c3"]


def test_delete_leaves_tombstone_against_late_insert() -> None:
    cache = LocalCache(user_id=USER_ID)
    reconciler = Reconciler(cache)
    row = make_comment("c1").to_row()
    reconciler.on_event(_event(Table.COMMENTS, ChangeKind.INSERT, row))

    assert reconciler.on_event(_event(Table.COMMENTS, ChangeKind.DELETE, {"id": "c1"})) is True
    assert reconciler.on_event(_event(Table.COMMENTS, ChangeKind.INSERT, row)) is False

    assert cache.comments_for("post-1").ids() == []
    assert reconciler.is_tombstoned(Table.COMMENTS, "c1")


def test_optimistic_comment_echo_is_a_confirmation() -> None:
    bus = InProcessPushBus()
    store = FakeRowStore(publisher=bus)

    async def scenario() -> LocalCache:
        cache = LocalCache(user_id=USER_ID)
        engine = OptimisticMutationEngine(cache, store)
        reconciler = Reconciler(cache, engine)
        bus.open_channel(Topic.comments("post-1"), reconciler.on_event, lambda exc: None)
        engine.apply(CreateComment(comment=make_comment("c1", user_id=USER_ID)))
        await engine.settle()
        assert reconciler.stats.duplicates == 1
        return cache

    cache = asyncio.run(scenario())
    assert cache.comments_for("post-1").ids() == ["c1"]


def test_notifications_are_deduplicated_and_ordered() -> None:
    cache = LocalCache(user_id=USER_ID)
    reconciler = Reconciler(cache)
    for notification_id, minutes in (("n2", 2), ("n1", 1), ("n2", 2)):
        row = make_notification(notification_id, minutes=minutes).to_row()
        reconciler.on_event(_event(Table.NOTIFICATIONS, ChangeKind.INSERT, row))

    assert cache.notifications.ids() == ["n1", "n2"]


def test_post_update_ignored_when_not_loaded() -> None:
    cache = LocalCache(user_id=USER_ID)
    reconciler = Reconciler(cache)

    changed = reconciler.on_event(_event(Table.POSTS, ChangeKind.UPDATE, make_post().to_row()))

    assert changed is False
    assert cache.posts == {}
    assert reconciler.stats.ignored == 1


def test_post_delete_drops_comments_and_bookmark() -> None:
    cache = LocalCache(user_id=USER_ID)
    cache.posts["post-1"] = make_post()
    cache.comments_for("post-1").insert(make_comment("c1"))
    cache.bookmarks.add("post-1")
    reconciler = Reconciler(cache)

    reconciler.on_event(_event(Table.POSTS, ChangeKind.DELETE, {"id": "post-1"}))
    late = reconciler.on_event(_event(Table.POSTS, ChangeKind.INSERT, make_post().to_row()))

    assert late is False
    assert cache.posts == {}
    assert "post-1" not in cache.comments
    assert cache.bookmarks == set()


def test_server_row_waits_for_pending_like() -> None:
    store = FakeRowStore()

    async def scenario() -> None:
        cache = LocalCache(user_id=USER_ID)
        cache.posts["post-1"] = make_post()
        engine = OptimisticMutationEngine(cache, store)
        reconciler = Reconciler(cache, engine)
        gate = store.hold_writes()

        engine.apply(ToggleLike(post_id="post-1", user_id=USER_ID))
        stale = make_post(upvotes=7).to_row()
        assert reconciler.on_event(_event(Table.POSTS, ChangeKind.UPDATE, stale)) is False
        assert cache.posts["post-1"].likes == (USER_ID,)
        assert reconciler.stats.deferred == 1

        gate.set()
        await engine.settle()

        # the parked server row is applied once the key settles
        assert cache.posts["post-1"].upvotes == 7
        assert cache.posts["post-1"].likes == ()

    asyncio.run(scenario())


def test_parked_row_applied_after_rollback() -> None:
    store = FakeRowStore()

    async def scenario() -> None:
        cache = LocalCache(user_id=USER_ID)
        cache.posts["post-1"] = make_post()
        engine = OptimisticMutationEngine(cache, store)
        reconciler = Reconciler(cache, engine)
        store.fail_writes.append(remote_error())

        engine.apply(ToggleLike(post_id="post-1", user_id=USER_ID))
        server = make_post(likes=("other",)).to_row()
        reconciler.on_event(_event(Table.POSTS, ChangeKind.UPDATE, server))
        await engine.settle()

        assert cache.posts["post-1"].likes == ("other",)

    asyncio.run(scenario())


def test_failed_like_does_not_resurrect_post_deleted_upstream() -> None:
    store = FakeRowStore()

    async def scenario() -> None:
        cache = LocalCache(user_id=USER_ID)
        cache.posts["post-1"] = make_post()
        engine = OptimisticMutationEngine(cache, store)
        reconciler = Reconciler(cache, engine)
        gate = store.hold_writes()
        store.fail_writes.append(remote_error())

        like = engine.apply(ToggleLike(post_id="post-1", user_id=USER_ID))
        reconciler.on_event(_event(Table.POSTS, ChangeKind.DELETE, {"id": "post-1"}))
        assert cache.posts == {}

        gate.set()
        assert isinstance(await like.wait(), Failure)

        assert cache.posts == {}
        assert reconciler.is_tombstoned(Table.POSTS, "post-1")
        assert not engine.is_pending(("post", "post-1"))

    asyncio.run(scenario())


def test_failed_delete_does_not_restore_post_deleted_upstream() -> None:
    store = FakeRowStore()

    async def scenario() -> None:
        cache = LocalCache(user_id=USER_ID)
        cache.posts["post-1"] = make_post(user_id=USER_ID)
        engine = OptimisticMutationEngine(cache, store)
        reconciler = Reconciler(cache, engine)
        gate = store.hold_writes()
        store.fail_writes.append(remote_error())

        deleted = engine.apply(DeletePost(post_id="post-1", user_id=USER_ID))
        reconciler.on_event(_event(Table.POSTS, ChangeKind.DELETE, {"id": "post-1"}))

        gate.set()
        assert isinstance(await deleted.wait(), Failure)

        assert cache.posts == {}

    asyncio.run(scenario())


def test_interaction_events_for_other_users_are_ignored() -> None:
    cache = LocalCache(user_id=USER_ID)
    reconciler = Reconciler(cache)
    mine = {"user_id": USER_ID, "anime_id": 9, "status": "favorite"}
    theirs = {"user_id": "someone-else", "anime_id": 9, "status": "watched"}

    assert reconciler.on_event(_event(Table.INTERACTIONS, ChangeKind.INSERT, theirs)) is False
    assert reconciler.on_event(_event(Table.INTERACTIONS, ChangeKind.INSERT, mine)) is True
    assert cache.interactions.status_of(9) is InteractionStatus.FAVORITE

    assert reconciler.on_event(_event(Table.INTERACTIONS, ChangeKind.DELETE, mine)) is True
    assert cache.interactions.status_of(9) is None


def test_malformed_events_are_counted_not_raised() -> None:
    cache = LocalCache(user_id=USER_ID)
    reconciler = Reconciler(cache)

    missing_id = reconciler.on_event(_event(Table.COMMENTS, ChangeKind.INSERT, {"content": "?"}))
    no_row = reconciler.on_event(
        ChangeEvent(topic="test", kind=ChangeKind.INSERT, table=Table.POSTS)
    )
    unhandled = reconciler.on_event(_event(Table.BOOKMARKS, ChangeKind.INSERT, {"id": "b"}))

    assert (missing_id, no_row, unhandled) == (False, False, False)
    assert reconciler.stats.ignored == 3
