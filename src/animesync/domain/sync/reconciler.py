"""Merge push-delivered row changes into the local cache exactly once."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from animesync.domain.model import (
    ChangeKind,
    Comment,
    Interaction,
    Notification,
    Post,
    Profile,
    Table,
)
from animesync.domain.sync.mutations import interaction_key, post_key

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from animesync.domain.ports import ChangeEvent
    from animesync.domain.sync.cache import LocalCache
    from animesync.domain.sync.mutations import CacheKey
    from animesync.domain.sync.optimistic import OptimisticMutationEngine

log = getLogger(__name__)


@dataclass(slots=True)
class ReconcileStats:
    applied: int = 0
    duplicates: int = 0
    deferred: int = 0
    ignored: int = 0


class Reconciler:
    """Idempotent reducer over change events.

    * Inserts are keyed by entity id: an id already present (usually because
      the optimistic engine put it there) is a confirmation, not a new row.
    * Deleted ids are remembered so a re-delivered insert cannot resurrect them.
    * Server rows for a post or interaction with a pending local mutation are
      parked until the last mutation on that key settles, then the latest one
      is applied so the cache ends on the server state.
    * Values loaded by a query while a local write is pending may predate that
      write. They are held back and only applied if the write is rolled back.
    * A rollback never restores a post or comment the server has deleted.
    """

    def __init__(self, cache: LocalCache, engine: OptimisticMutationEngine | None = None) -> None:
        self._cache = cache
        self._engine = engine
        self._tombstones: set[tuple[Table, str]] = set()
        self._deferred: dict[CacheKey, Callable[[], bool]] = {}
        self._fallbacks: dict[CacheKey, Callable[[], bool]] = {}
        self.stats = ReconcileStats()
        self._handlers: dict[Table, Callable[[ChangeEvent], bool]] = {
            Table.COMMENTS: self._on_comment,
            Table.NOTIFICATIONS: self._on_notification,
            Table.POSTS: self._on_post,
            Table.INTERACTIONS: self._on_interaction,
            Table.PROFILES: self._on_profile,
        }
        if engine is not None:
            engine.add_settle_listener(self._on_settled)
            engine.add_removal_check(self.deleted_upstream)

    def on_event(self, event: ChangeEvent) -> bool:
        """Apply ``event``; return whether the cache changed."""

        handler = self._handlers.get(event.table)
        if handler is None:
            log.debug("No reconciliation for %s events on %s", event.kind, event.table)
            self.stats.ignored += 1
            return False
        try:
            changed = handler(event)
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("Ignoring malformed %s event on %s: %s", event.kind, event.topic, exc)
            self.stats.ignored += 1
            return False
        if changed:
            self.stats.applied += 1
        return changed

    def is_tombstoned(self, table: Table, entity_id: str) -> bool:
        return (table, entity_id) in self._tombstones

    def deleted_upstream(self, key: CacheKey) -> bool:
        """Whether the post or comment behind a mutation cell was deleted on the server."""

        kind, *ids = key
        if kind == "post":
            return self.is_tombstoned(Table.POSTS, ids[0])
        if kind == "comment":
            post_id, comment_id = ids
            return self.is_tombstoned(Table.POSTS, post_id) or self.is_tombstoned(
                Table.COMMENTS, comment_id
            )
        return False

    def absorb_loaded(self, key: CacheKey, apply: Callable[[], bool]) -> bool:
        """Apply a value read by a query, unless a local write on ``key`` is in flight."""

        if self._engine is not None and self._engine.is_pending(key):
            log.debug("Holding loaded value for %s behind a pending local write", key)
            self._fallbacks[key] = apply
            return False
        return apply()

    def absorb_post(self, post: Post) -> bool:
        if self.is_tombstoned(Table.POSTS, post.id):
            return False
        return self.absorb_loaded(post_key(post.id), lambda: self._store_post(post))

    def _duplicate(self, event: ChangeEvent) -> bool:
        log.debug("Duplicate %s for %s %s", event.kind, event.table, event.entity_id)
        self.stats.duplicates += 1
        return False

    def _on_comment(self, event: ChangeEvent) -> bool:
        entity_id = event.entity_id
        if event.kind is ChangeKind.DELETE:
            return self._delete_comment(entity_id, event.row)
        if self.is_tombstoned(Table.COMMENTS, entity_id):
            return self._duplicate(event)
        comment = Comment.from_row(event.row)
        collection = self._cache.comments_for(comment.post_id)
        if event.kind is ChangeKind.INSERT:
            if entity_id in collection:
                return self._duplicate(event)
            return collection.insert(comment)
        return collection.upsert(comment)

    def _delete_comment(self, entity_id: str, row: Mapping[str, object]) -> bool:
        self._tombstones.add((Table.COMMENTS, entity_id))
        post_id = row.get("post_id")
        if post_id is not None:
            return self._cache.comments_for(str(post_id)).remove(entity_id) is not None
        existing = self._cache.find_comment(entity_id)
        if existing is None:
            return False
        return self._cache.comments_for(existing.post_id).remove(entity_id) is not None

    def _on_notification(self, event: ChangeEvent) -> bool:
        entity_id = event.entity_id
        notifications = self._cache.notifications
        if event.kind is ChangeKind.DELETE:
            self._tombstones.add((Table.NOTIFICATIONS, entity_id))
            return notifications.remove(entity_id) is not None
        if self.is_tombstoned(Table.NOTIFICATIONS, entity_id) or entity_id in notifications:
            return self._duplicate(event)
        return notifications.insert(Notification.from_row(event.row))

    def _on_post(self, event: ChangeEvent) -> bool:
        entity_id = event.entity_id
        posts = self._cache.posts
        if event.kind is ChangeKind.DELETE:
            self._tombstones.add((Table.POSTS, entity_id))
            self._deferred.pop(post_key(entity_id), None)
            self._fallbacks.pop(post_key(entity_id), None)
            return self._cache.drop_post(entity_id) is not None
        if self.is_tombstoned(Table.POSTS, entity_id):
            return self._duplicate(event)
        post = Post.from_row(event.row)
        if event.kind is ChangeKind.INSERT and entity_id in posts:
            return self._duplicate(event)
        if event.kind is ChangeKind.UPDATE and entity_id not in posts:
            log.debug("Ignoring update for post %s that is not loaded", entity_id)
            self.stats.ignored += 1
            return False
        return self._apply_or_defer(post_key(entity_id), lambda: self._store_post(post))

    def _store_post(self, post: Post) -> bool:
        if self._cache.posts.get(post.id) == post:
            return False
        self._cache.posts[post.id] = post
        return True

    def _on_interaction(self, event: ChangeEvent) -> bool:
        row = event.row
        user_id = str(row.get("user_id"))
        if user_id != self._cache.interactions.user_id:
            self.stats.ignored += 1
            return False
        anime_id = int(row["anime_id"])  # type: ignore[call-overload]
        if event.kind is ChangeKind.DELETE:
            status = None
        else:
            status = Interaction.from_row(row).status
        store = self._cache.interactions
        return self._apply_or_defer(
            interaction_key(anime_id), lambda: store.assign(anime_id, status)
        )

    def _on_profile(self, event: ChangeEvent) -> bool:
        if event.kind is ChangeKind.DELETE:
            return self._cache.profiles.pop(event.entity_id, None) is not None
        profile = Profile.from_row(event.row)
        if self._cache.profiles.get(profile.id) == profile:
            return self._duplicate(event)
        self._cache.profiles[profile.id] = profile
        return True

    def _apply_or_defer(self, key: CacheKey, apply: Callable[[], bool]) -> bool:
        if self._engine is not None and self._engine.is_pending(key):
            log.debug("Deferring server row for %s until local write settles", key)
            self._deferred[key] = apply
            self.stats.deferred += 1
            return False
        return apply()

    def _on_settled(self, key: CacheKey, succeeded: bool) -> None:  # noqa: FBT001
        parked = [cell for cell in {*self._deferred, *self._fallbacks} if key[: len(cell)] == cell]
        for cell in parked:
            if self._engine is not None and self._engine.is_pending(cell):
                continue
            apply = self._deferred.pop(cell, None)
            fallback = self._fallbacks.pop(cell, None)
            if apply is None and not succeeded:
                apply = fallback
            if apply is None:
                continue
            log.debug("Applying parked server row for %s (write ok: %s)", cell, succeeded)
            if apply():
                self.stats.applied += 1
