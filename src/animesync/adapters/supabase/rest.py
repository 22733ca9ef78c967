"""Row store over the PostgREST dialect served by the managed backend."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING, Unpack, cast

import httpx

from animesync.adapters.http_resilience import LazyClient
from animesync.config.backend import get_backend_config
from animesync.domain.errors import RemoteError
from animesync.domain.model import ChangeKind
from animesync.domain.ports import RowStore

from .errors import raise_for_backend

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import TracebackType

    from animesync.adapters.http_resilience import ClientFactory, RequestOptions
    from animesync.config.backend import BackendConfig
    from animesync.domain.model import Row, Table
    from animesync.domain.ports import ChangePublisher

log = getLogger(__name__)

type QueryParams = list[tuple[str, str]]

RETURN_REPRESENTATION = "return=representation"
MERGE_DUPLICATES = "resolution=merge-duplicates,return=representation"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"


def _encode_value(value: object) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def filter_params(filters: Mapping[str, object] | None) -> QueryParams:
    """Equality filters in PostgREST query syntax (``col=eq.value``)."""

    if not filters:
        return []
    return [(column, _encode_value(value)) for column, value in filters.items()]


def search_param(column: str, term: str) -> tuple[str, str]:
    # PostgREST uses * as the wildcard in URLs; reserved characters are dropped
    cleaned = "".join(ch for ch in term if ch not in "*,()")
    return (column, f"ilike.*{cleaned}*")


class PostgrestRowStore:
    """Implements :class:`~animesync.domain.ports.RowStore` over ``/rest/v1``.

    When a ``publisher`` is given, every acknowledged write is echoed to it as a
    change event, which is how a single process observes its own writes.
    """

    def __init__(
        self,
        *,
        config: BackendConfig | None = None,
        client_factory: ClientFactory | None = None,
        publisher: ChangePublisher | None = None,
    ) -> None:
        self._config = config or get_backend_config()
        resilience = replace(
            self._config.resilience,
            base_url=self._config.rest_url,
            default_headers={**self._config.auth_headers(), "Accept": "application/json"},
        )
        self._client = LazyClient(resilience, client_factory)
        self._publisher = publisher

    async def __aenter__(self) -> PostgrestRowStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def select(
        self,
        table: Table,
        *,
        filters: Mapping[str, object] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        search: tuple[str, str] | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        params: QueryParams = [("select", "*"), *filter_params(filters)]
        if search is not None:
            params.append(search_param(*search))
        if order_by is not None:
            params.append(("order", f"{order_by}.{'asc' if ascending else 'desc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        response = await self._request("GET", table, f"select from {table}", params=params)
        return self._rows(response)

    async def select_one(self, table: Table, *, filters: Mapping[str, object]) -> Row:
        params: QueryParams = [("select", "*"), *filter_params(filters)]
        response = await self._request(
            "GET",
            table,
            f"select one from {table}",
            params=params,
            headers={"Accept": SINGLE_OBJECT},
        )
        payload = response.json()
        if not isinstance(payload, dict):
            raise RemoteError(f"Unexpected single-row payload from {table}")
        return cast("Row", payload)

    async def insert(self, table: Table, row: Mapping[str, object]) -> Row:
        response = await self._request(
            "POST",
            table,
            f"insert into {table}",
            json=dict(row),
            headers={"Prefer": RETURN_REPRESENTATION},
        )
        stored = self._first(response, table)
        self._publish(table, ChangeKind.INSERT, new=stored)
        return stored

    async def upsert(
        self,
        table: Table,
        row: Mapping[str, object],
        *,
        on_conflict: Sequence[str],
    ) -> Row:
        response = await self._request(
            "POST",
            table,
            f"upsert into {table}",
            params=[("on_conflict", ",".join(on_conflict))],
            json=dict(row),
            headers={"Prefer": MERGE_DUPLICATES},
        )
        stored = self._first(response, table)
        self._publish(table, ChangeKind.UPDATE, new=stored)
        return stored

    async def update(
        self,
        table: Table,
        values: Mapping[str, object],
        *,
        filters: Mapping[str, object],
    ) -> list[Row]:
        response = await self._request(
            "PATCH",
            table,
            f"update {table}",
            params=filter_params(filters),
            json=dict(values),
            headers={"Prefer": RETURN_REPRESENTATION},
        )
        rows = self._rows(response)
        for stored in rows:
            self._publish(table, ChangeKind.UPDATE, new=stored)
        return rows

    async def delete(self, table: Table, *, filters: Mapping[str, object]) -> None:
        response = await self._request(
            "DELETE",
            table,
            f"delete from {table}",
            params=filter_params(filters),
            headers={"Prefer": RETURN_REPRESENTATION},
        )
        for removed in self._rows(response):
            self._publish(table, ChangeKind.DELETE, old=removed)

    async def _request(
        self,
        method: str,
        table: Table,
        context: str,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        try:
            response = await self._client.get().request(method, str(table), **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteError(f"{context} failed: {exc}") from exc
        raise_for_backend(response, context=context)
        return response

    @staticmethod
    def _rows(response: httpx.Response) -> list[Row]:
        if not response.content:
            return []
        payload = response.json()
        if not isinstance(payload, list):
            raise RemoteError("Unexpected row payload; expected a list")
        return [cast("Row", row) for row in payload if isinstance(row, dict)]

    def _first(self, response: httpx.Response, table: Table) -> Row:
        rows = self._rows(response)
        if not rows:
            raise RemoteError(f"Write to {table} returned no representation")
        return rows[0]

    def _publish(
        self,
        table: Table,
        kind: ChangeKind,
        *,
        new: Row | None = None,
        old: Row | None = None,
    ) -> None:
        if self._publisher is None:
            return
        self._publisher.publish(table, kind, new=new, old=old)


if TYPE_CHECKING:
    _store_check: RowStore = PostgrestRowStore()
