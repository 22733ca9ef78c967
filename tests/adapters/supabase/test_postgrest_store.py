from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from animesync.adapters.local_bus import InProcessPushBus
from animesync.adapters.supabase import PostgrestRowStore, filter_params
from animesync.adapters.supabase.rest import search_param
from animesync.config.backend import BackendConfig
from animesync.config.http_resilience import ResilienceConfig
from animesync.domain.errors import ConflictError, NotFoundError, RemoteError
from animesync.domain.model import ChangeKind, Table
from animesync.domain.ports import ChangeEvent, Topic
from tests.support.builders import make_comment, make_post
from tests.support.http import Handler, make_client_factory

CONFIG = BackendConfig(
    url="https://backend.test/",
    anon_key="anon-key",
    access_token="user-token",
    resilience=ResilienceConfig(name="backend", cache=None),
)


def _store(handler: Handler, *, bus: InProcessPushBus | None = None) -> PostgrestRowStore:
    return PostgrestRowStore(
        config=CONFIG, client_factory=make_client_factory(handler), publisher=bus
    )


def test_filter_and_search_encoding() -> None:
    assert filter_params({"id": "p1", "deleted_at": None, "public": True}) == [
        ("id", "eq.p1"),
        ("deleted_at", "is.null"),
        ("public", "eq.true"),
    ]
    assert search_param("title", "a*(b),c") == ("title", "ilike.*abc*")


def test_select_builds_postgrest_query() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[make_post().to_row()])

    async def scenario() -> list[dict[str, object]]:
        async with _store(handler) as store:
            return await store.select(
                Table.POSTS,
                filters={"user_id": "author"},
                search=("title", "frieren"),
                order_by="upvotes",
                ascending=False,
                limit=20,
            )

    rows = asyncio.run(scenario())

    [request] = seen
    assert rows[0]["id"] == "post-1"
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/posts"
    assert list(request.url.params.multi_items()) == [
        ("select", "*"),
        ("user_id", "eq.author"),
        ("title", "ilike.*frieren*"),
        ("order", "upvotes.desc"),
        ("limit", "20"),
    ]
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer user-token"


def test_select_one_asks_for_single_object() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Accept"] == "application/vnd.pgrst.object+json"
        if request.url.params["id"] == "eq.missing":
            return httpx.Response(
                406, json={"code": "PGRST116", "message": "JSON object requested, 0 rows"}
            )
        return httpx.Response(200, json={"id": "u1", "username": "rin"})

    async def scenario() -> None:
        async with _store(handler) as store:
            row = await store.select_one(Table.PROFILES, filters={"id": "u1"})
            assert row["username"] == "rin"
            with pytest.raises(NotFoundError):
                await store.select_one(Table.PROFILES, filters={"id": "missing"})

    asyncio.run(scenario())


def test_writes_send_prefer_headers_and_echo() -> None:
    bus = InProcessPushBus()
    events: list[ChangeEvent] = []
    bus.open_channel(Topic.comments("post-1"), events.append, lambda exc: None)
    comment = make_comment("c1").to_row()
    prefers: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        prefers.append((request.method, request.headers.get("Prefer", "")))
        if request.method == "POST":
            return httpx.Response(201, json=[json.loads(request.content)])
        if request.method == "PATCH":
            return httpx.Response(200, json=[comment | json.loads(request.content)])
        return httpx.Response(200, json=[comment])

    async def scenario() -> None:
        async with _store(handler, bus=bus) as store:
            await store.insert(Table.COMMENTS, comment)
            await store.update(Table.COMMENTS, {"content": "edited"}, filters={"id": "c1"})
            await store.delete(Table.COMMENTS, filters={"id": "c1"})

    asyncio.run(scenario())

    assert prefers == [
        ("POST", "return=representation"),
        ("PATCH", "return=representation"),
        ("DELETE", "return=representation"),
    ]
    assert [event.kind for event in events] == [
        ChangeKind.INSERT,
        ChangeKind.UPDATE,
        ChangeKind.DELETE,
    ]
    assert events[1].new is not None
    assert events[1].new["content"] == "edited"


def test_upsert_merges_on_conflict_columns() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[json.loads(request.content)])

    async def scenario() -> dict[str, object]:
        async with _store(handler) as store:
            return await store.upsert(
                Table.INTERACTIONS,
                {"user_id": "u1", "anime_id": 3, "status": "watched"},
                on_conflict=("user_id", "anime_id"),
            )

    stored = asyncio.run(scenario())

    [request] = seen
    assert stored["status"] == "watched"
    assert request.url.path == "/rest/v1/user_anime_interactions"
    assert request.url.params["on_conflict"] == "user_id,anime_id"
    assert request.headers["Prefer"] == "resolution=merge-duplicates,return=representation"


@pytest.mark.parametrize(
    ("status", "payload", "expected"),
    [
        (409, {"code": "23505", "message": "duplicate key value"}, ConflictError),
        (404, {"message": "relation does not exist"}, NotFoundError),
        (500, {"message": "boom"}, RemoteError),
    ],
)
def test_error_responses_map_to_domain_errors(
    status: int, payload: dict[str, str], expected: type[RemoteError]
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        del request
        return httpx.Response(status, json=payload)

    async def scenario() -> None:
        async with _store(handler) as store:
            await store.insert(Table.POSTS, make_post().to_row())

    with pytest.raises(expected) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.status == status
    assert str(excinfo.value).startswith("insert into posts: ")


def test_transport_errors_become_remote_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async def scenario() -> None:
        async with _store(handler) as store:
            await store.select(Table.POSTS)

    with pytest.raises(RemoteError, match="select from posts failed"):
        asyncio.run(scenario())
