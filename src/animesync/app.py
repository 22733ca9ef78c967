"""Application entry points: one synchronized session per signed-in user."""

from __future__ import annotations

from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

from animesync.adapters.jikan import JikanCatalog
from animesync.adapters.local_bus import InProcessPushBus
from animesync.adapters.sqlalchemy import SqlAlchemyRowStore, shutdown, startup
from animesync.adapters.supabase import PostgrestRowStore, StorageBucket
from animesync.config.backend import get_backend_config
from animesync.config.errors import ConfigurationError
from animesync.config.sync import SyncConfig, get_sync_config
from animesync.domain import catalog, feed, profiles
from animesync.domain.errors import ValidationError
from animesync.domain.model import Comment, Post, SortField, Table
from animesync.domain.outcome import FailureKind, Success, failure_from, invalid
from animesync.domain.ports import Topic
from animesync.domain.sync import (
    CreateComment,
    CreatePost,
    DeleteComment,
    DeletePost,
    EditPost,
    SetInteraction,
    SyncScope,
    ToggleBookmark,
    ToggleLike,
    Upvote,
)
from animesync.domain.sync.mutations import bookmark_key, interaction_key

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from animesync.config.backend import UploadPolicy
    from animesync.domain.model import (
        AnimeDetail,
        Interaction,
        InteractionStatus,
        Notification,
        Profile,
    )
    from animesync.domain.outcome import Failure, Outcome
    from animesync.domain.ports import CatalogSource, ObjectStorage, PushBus, RowStore
    from animesync.domain.sync import (
        AppliedMutation,
        CatalogPaginator,
        LocalCache,
        Mutation,
    )

    BrowserFactory = Callable[..., CatalogPaginator]

log = getLogger(__name__)


class _Closeable(Protocol):
    async def aclose(self) -> None: ...


class SyncSession:
    """The surface a UI drives: reads, optimistic writes and live updates.

    User actions return immediately with the prediction already in
    :attr:`cache`; the returned :class:`AppliedMutation` resolves once the
    write is confirmed or rolled back. Refused actions and failed writes are
    returned as :class:`Failure` and kept in :attr:`errors` until dismissed.
    """

    def __init__(
        self,
        *,
        store: RowStore,
        bus: PushBus,
        user_id: str | None,
        email: str | None = None,
        catalog_source: CatalogSource | None = None,
        storage: ObjectStorage | None = None,
        config: SyncConfig | None = None,
        upload_policy: UploadPolicy | None = None,
        resources: Sequence[_Closeable] = (),
    ) -> None:
        self.user_id = user_id
        self.email = email
        self.config = config or get_sync_config()
        self._store = store
        self._catalog = catalog_source
        self._storage = storage
        self._upload_policy = upload_policy
        self._resources = tuple(resources)
        self._errors: list[Failure] = []
        self._browsers: dict[str, CatalogPaginator] = {}
        self.scope = SyncScope(
            store=store,
            bus=bus,
            user_id=user_id,
            buffer_size=self.config.channel_buffer_size,
            on_failure=self._record,
        )

    @property
    def cache(self) -> LocalCache:
        return self.scope.cache

    @property
    def errors(self) -> tuple[Failure, ...]:
        return tuple(self._errors)

    def dismiss(self, index: int) -> None:
        if 0 <= index < len(self._errors):
            del self._errors[index]

    def clear_errors(self) -> None:
        self._errors.clear()

    # lifecycle

    async def start(self) -> Outcome[None]:
        """Load the user's own state and follow the notification stream."""

        self.scope.follow(Topic.notifications())
        notifications = await self._guarded(
            feed.load_notifications(self._store, limit=self.config.feed_limit)
        )
        if notifications.ok:
            self._absorb_notifications(notifications.value)
        if self.user_id is None:
            return Success(None)

        interactions = await self._guarded(feed.load_interactions(self._store, self.user_id))
        if interactions.ok:
            self._absorb_interactions(interactions.value)
        bookmarks = await self._guarded(feed.load_bookmarks(self._store, self.user_id))
        if bookmarks.ok:
            self._absorb_bookmarks({bookmark.post_id for bookmark in bookmarks.value})
        for outcome in (notifications, interactions, bookmarks):
            if not outcome.ok:
                return outcome
        return Success(None)

    async def settle(self) -> None:
        await self.scope.engine.settle()

    async def close(self) -> None:
        await self.scope.close()
        for resource in self._resources:
            await resource.aclose()
        log.debug("Session for %s closed", self.user_id)

    # reads

    async def load_feed(
        self,
        *,
        search: str | None = None,
        sort_by: SortField = SortField.CREATED_AT,
        ascending: bool = False,
    ) -> Outcome[list[Post]]:
        outcome = await self._guarded(
            feed.load_feed(
                self._store,
                search=search,
                sort_by=sort_by,
                ascending=ascending,
                limit=self.config.feed_limit,
            )
        )
        if outcome.ok:
            self._absorb_posts(outcome.value)
        return outcome

    async def open_post(self, post_id: str) -> Outcome[Post]:
        """Load a post with its comments and follow both live."""

        self.scope.follow(Topic.post(post_id))
        self.scope.follow(Topic.comments(post_id))
        outcome = await self._guarded(feed.load_post(self._store, post_id))
        if not outcome.ok:
            return outcome
        self._absorb_posts([outcome.value])
        comments = await self._guarded(feed.load_comments(self._store, post_id))
        if comments.ok:
            self._absorb_comments(post_id, comments.value)
        return Success(self.cache.posts.get(post_id, outcome.value))

    def close_post(self, post_id: str) -> None:
        self.scope.unfollow(Topic.comments(post_id))
        self.scope.unfollow(Topic.post(post_id))

    def comments(self, post_id: str) -> tuple[Comment, ...]:
        return self.cache.comments_for(post_id).snapshot()

    def notifications(self) -> tuple[Notification, ...]:
        return self.cache.notifications.snapshot()

    # optimistic writes

    def toggle_like(self, post_id: str) -> AppliedMutation[Post | None] | Failure:
        return self._apply(lambda user_id: ToggleLike(post_id=post_id, user_id=user_id))

    def upvote(self, post_id: str) -> AppliedMutation[Post | None] | Failure:
        return self._apply(lambda _: Upvote(post_id=post_id))

    def toggle_bookmark(self, post_id: str) -> AppliedMutation[bool] | Failure:
        return self._apply(lambda user_id: ToggleBookmark(user_id=user_id, post_id=post_id))

    def set_interaction(
        self, anime_id: int, status: InteractionStatus
    ) -> AppliedMutation[InteractionStatus | None] | Failure:
        return self._apply(
            lambda user_id: SetInteraction(user_id=user_id, anime_id=anime_id, requested=status)
        )

    def add_comment(self, post_id: str, content: str) -> AppliedMutation[Comment | None] | Failure:
        return self._apply(
            lambda user_id: CreateComment(
                Comment(post_id=post_id, user_id=user_id, content=content.strip())
            )
        )

    def delete_comment(
        self, post_id: str, comment_id: str
    ) -> AppliedMutation[Comment | None] | Failure:
        return self._apply(
            lambda user_id: DeleteComment(post_id=post_id, comment_id=comment_id, user_id=user_id)
        )

    def create_post(
        self, title: str, content: str = "", *, image_url: str | None = None
    ) -> AppliedMutation[Post | None] | Failure:
        return self._apply(
            lambda user_id: CreatePost(
                Post(title=title.strip(), content=content, image_url=image_url, user_id=user_id)
            )
        )

    def edit_post(
        self,
        post_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        image_url: str | None = None,
    ) -> AppliedMutation[Post | None] | Failure:
        return self._apply(
            lambda user_id: EditPost(
                post_id=post_id,
                user_id=user_id,
                title=title,
                content=content,
                image_url=image_url,
            )
        )

    def delete_post(self, post_id: str) -> AppliedMutation[Post | None] | Failure:
        return self._apply(lambda user_id: DeletePost(post_id=post_id, user_id=user_id))

    # catalog

    def top_anime(self) -> CatalogPaginator:
        return self._browser("top", catalog.top_anime)

    def current_season(self) -> CatalogPaginator:
        return self._browser("season", catalog.current_season)

    async def anime_detail(self, anime_id: int) -> Outcome[AnimeDetail]:
        if self._catalog is None:
            return self._record(invalid("No anime catalog configured"))
        return await self._guarded(catalog.fetch_detail(self._catalog, anime_id))

    # profiles

    async def profile(self, user_id: str | None = None) -> Outcome[Profile]:
        target = user_id or self.user_id
        if target is None:
            return self._record(invalid("Sign in to view your profile"))
        outcome = await self._guarded(
            profiles.get_or_create_profile(
                self._store, target, current_user_id=self.user_id, email=self.email
            )
        )
        if outcome.ok:
            self.cache.profiles[target] = outcome.value
        return outcome

    async def update_profile(
        self, *, username: str | None = None, bio: str | None = None
    ) -> Outcome[Profile]:
        if self.user_id is None:
            return self._record(invalid("Sign in to edit your profile"))
        outcome = await self._guarded(
            profiles.update_profile(self._store, self.user_id, username=username, bio=bio)
        )
        if outcome.ok:
            self.cache.profiles[self.user_id] = outcome.value
        return outcome

    async def upload_avatar(
        self, filename: str, content: bytes, *, content_type: str | None = None
    ) -> Outcome[Profile]:
        if self.user_id is None:
            return self._record(invalid("Sign in to change your avatar"))
        if self._storage is None:
            return self._record(invalid("No object storage configured"))
        outcome = await self._guarded(
            profiles.upload_avatar(
                self._storage,
                self._store,
                self.user_id,
                filename=filename,
                content=content,
                content_type=content_type,
                policy=self._upload_policy,
            )
        )
        if outcome.ok:
            self.cache.profiles[self.user_id] = outcome.value
        return outcome

    # internals

    def _apply[T](self, build: Callable[[str], Mutation[T]]) -> AppliedMutation[T] | Failure:
        if self.scope.closed:
            return invalid("Session is closed")
        if self.user_id is None:
            return self._record(invalid("Sign in to do that"))
        try:
            return self.scope.engine.apply(build(self.user_id))
        except ValidationError as exc:
            return self._record(failure_from(exc, str(exc)))

    async def _guarded[T](self, awaitable: Awaitable[Outcome[T]]) -> Outcome[T]:
        outcome: Outcome[T] | None = await self.scope.guard(awaitable)
        if outcome is None:
            return invalid("Session closed before the request finished")
        if not outcome.ok:
            self._record(outcome)
        return outcome

    def _record(self, failure: Failure) -> Failure:
        if failure.kind is not FailureKind.CONFLICT:
            self._errors.append(failure)
        return failure

    def _browser(self, name: str, factory: BrowserFactory) -> CatalogPaginator:
        browser = self._browsers.get(name)
        if browser is None:
            if self._catalog is None:
                raise ConfigurationError("No anime catalog configured")
            browser = self.scope.track(factory(self._catalog, interactions=self.cache.interactions))
            self._browsers[name] = browser
        return browser

    def _absorb_posts(self, posts: Iterable[Post]) -> None:
        for post in posts:
            self.scope.reconciler.absorb_post(post)

    def _absorb_interactions(self, interactions: Iterable[Interaction]) -> None:
        store = self.cache.interactions
        loaded = {
            item.anime_id: item.status for item in interactions if item.user_id == self.user_id
        }
        for anime_id in {*store.items(), *loaded}:
            status = loaded.get(anime_id)
            self.scope.reconciler.absorb_loaded(
                interaction_key(anime_id), partial(store.assign, anime_id, status)
            )

    def _absorb_bookmarks(self, loaded: set[str]) -> None:
        for post_id in self.cache.bookmarks | loaded:
            self.scope.reconciler.absorb_loaded(
                bookmark_key(post_id), partial(self._mark_bookmark, post_id, post_id in loaded)
            )

    def _mark_bookmark(self, post_id: str, present: bool) -> bool:  # noqa: FBT001
        if (post_id in self.cache.bookmarks) == present:
            return False
        if present:
            self.cache.bookmarks.add(post_id)
        else:
            self.cache.bookmarks.discard(post_id)
        return True

    def _absorb_comments(self, post_id: str, comments: Iterable[Comment]) -> None:
        collection = self.cache.comments_for(post_id)
        for comment in comments:
            if not self.scope.reconciler.is_tombstoned(Table.COMMENTS, comment.id):
                collection.insert(comment)

    def _absorb_notifications(self, notifications: Iterable[Notification]) -> None:
        for notification in notifications:
            if not self.scope.reconciler.is_tombstoned(Table.NOTIFICATIONS, notification.id):
                self.cache.notifications.insert(notification)


def build_local_session(
    user_id: str | None,
    *,
    email: str | None = None,
    database_uri: str | None = None,
    catalog_source: CatalogSource | None = None,
    storage: ObjectStorage | None = None,
) -> SyncSession:
    """Session over the local SQLite store with in-process change delivery."""

    # one local engine per process; dispose the previous session's pool first
    shutdown()
    engine = startup(database_uri=database_uri)
    bus = InProcessPushBus()
    resources: list[_Closeable] = []
    source = catalog_source
    if source is None:
        jikan = JikanCatalog()
        resources.append(jikan)
        source = jikan
    return SyncSession(
        store=SqlAlchemyRowStore(engine, publisher=bus),
        bus=bus,
        user_id=user_id,
        email=email,
        catalog_source=source,
        storage=storage,
        resources=resources,
    )


def build_remote_session(
    user_id: str | None,
    *,
    email: str | None = None,
    catalog_source: CatalogSource | None = None,
) -> SyncSession:
    """Session against the managed backend configured in the environment.

    Writes made by this session are echoed through an in-process bus.
    """

    config = get_backend_config()
    bus = InProcessPushBus()
    store = PostgrestRowStore(config=config, publisher=bus)
    bucket = StorageBucket(config=config)
    resources: list[_Closeable] = [store, bucket]
    source = catalog_source
    if source is None:
        jikan = JikanCatalog()
        resources.append(jikan)
        source = jikan
    return SyncSession(
        store=store,
        bus=bus,
        user_id=user_id,
        email=email,
        catalog_source=source,
        storage=bucket,
        upload_policy=config.uploads,
        resources=resources,
    )
