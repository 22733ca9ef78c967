"""Async HTTP client with a timeout, bounded retries, a rate limit and an optional cache.

The catalog client caches GET responses; the backend clients never do, since
row reads must reflect the latest committed state.
"""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from animesync.config.storage import get_storage_config

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._client import UseClientDefault
    from httpx._types import (
        HeaderTypes,
        QueryParamTypes,
        RequestContent,
        RequestExtensions,
        TimeoutTypes,
        URLTypes,
    )

    from animesync.config.http_resilience import CacheConfig, ResilienceConfig, RetryPolicy

log = getLogger(__name__)

type ClientFactory = Callable[[ResilienceConfig], ResilientClient]


class RequestOptions(TypedDict, total=False):
    content: RequestContent | None
    json: object
    params: QueryParamTypes | None
    headers: HeaderTypes | None
    timeout: TimeoutTypes | UseClientDefault
    extensions: RequestExtensions | None


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        backoff_jitter=policy.backoff_jitter,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(policy.allowed_methods),
        status_forcelist=tuple(policy.status_forcelist),
        retry_on_exceptions=policy.retry_on_exceptions,
    )


def open_cache_storage(config: CacheConfig) -> AsyncSqliteStorage:
    if config.backend == "sqlite":
        path = config.sqlite_path or str(get_storage_config().http_cache_path())
    elif config.backend == "memory":
        path = ":memory:"
    else:
        raise ValueError(f"Unsupported cache backend: {config.backend}")
    return AsyncSqliteStorage(database_path=path, default_ttl=config.default_ttl_seconds)


def open_async_client(
    config: ResilienceConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Assemble the ``httpx`` client: retries wrap ``transport``, the cache wraps both."""

    retrying = RetryTransport(transport=transport, retry=build_retry(config.retry))
    headers = dict(config.default_headers or {})
    if config.cache is not None and config.cache.enabled:
        return AsyncCacheClient(
            base_url=config.base_url or "",
            timeout=config.timeout_seconds,
            headers=headers,
            transport=retrying,
            storage=open_cache_storage(config.cache),
        )
    return httpx.AsyncClient(
        base_url=config.base_url or "",
        timeout=config.timeout_seconds,
        headers=headers,
        transport=retrying,
    )


class ResilientClient:
    """Rate-limited facade over :func:`open_async_client`.

    ``transport`` replaces the network layer underneath the retry transport,
    which is how tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )
        self._client = open_async_client(config, transport)

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        if self._limiter is None:
            response = await self._client.request(method, url, **kwargs)
        else:
            async with self._limiter:
                response = await self._client.request(method, url, **kwargs)
        log.debug("%s %s %s -> %s", self.config.name, method, url, response.status_code)
        return response

    async def get(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: URLTypes, **kwargs: Unpack[RequestOptions]) -> httpx.Response:
        return await self.request("POST", url, **kwargs)


class LazyClient:
    """Opens one :class:`ResilientClient` on first use and reuses it until closed."""

    def __init__(self, config: ResilienceConfig, factory: ClientFactory | None = None) -> None:
        self.config = config
        self._factory = factory or ResilientClient
        self._client: ResilientClient | None = None

    def get(self) -> ResilientClient:
        if self._client is None or self._client.is_closed:
            self._client = self._factory(self.config)
        return self._client

    async def aclose(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()
