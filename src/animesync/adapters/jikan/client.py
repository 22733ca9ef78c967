"""HTTP client for the Jikan v4 anime catalog."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx
import pydantic

from animesync.adapters.http_resilience import LazyClient
from animesync.config.catalog import get_catalog_config
from animesync.domain.errors import NotFoundError, RemoteError
from animesync.domain.ports import CatalogSource

from .schema import AnimeListResponse, AnimeResponse, ErrorResponse
from .translator import parse_detail, parse_page

if TYPE_CHECKING:
    from types import TracebackType

    from animesync.adapters.http_resilience import ClientFactory
    from animesync.config.catalog import CatalogConfig
    from animesync.domain.model import AnimeDetail, CatalogPage

log = getLogger(__name__)


class CatalogAPIError(RemoteError):
    """Raised when the catalog API returns an unexpected response."""


class JikanCatalog:
    """Read-only catalog source backed by the public Jikan API.

    One underlying client is opened lazily and reused until :meth:`aclose`.
    """

    def __init__(
        self,
        *,
        config: CatalogConfig | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config or get_catalog_config()
        self._client = LazyClient(self._config.resilience, client_factory)

    async def __aenter__(self) -> JikanCatalog:
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

    async def fetch_top(self, page: int) -> CatalogPage:
        payload = await self._get_json(f"{self._config.base_url}/top/anime", {"page": page})
        return parse_page(page, self._validate(AnimeListResponse, payload))

    async def fetch_current_season(self, page: int) -> CatalogPage:
        payload = await self._get_json(f"{self._config.base_url}/seasons/now", {"page": page})
        return parse_page(page, self._validate(AnimeListResponse, payload))

    async def fetch_anime(self, anime_id: int) -> AnimeDetail:
        payload = await self._get_json(f"{self._config.base_url}/anime/{anime_id}/full", None)
        return parse_detail(self._validate(AnimeResponse, payload).data)

    async def _get_json(self, url: str, params: dict[str, int] | None) -> object:
        try:
            response = await self._client.get().get(url, params=params)
        except httpx.HTTPError as exc:
            raise CatalogAPIError(f"Catalog request failed: {exc}") from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(f"Catalog has no resource at {url}", status=response.status_code)
        if response.is_error:
            message = _error_message(response)
            log.error(f"Catalog API error {response.status_code}: {message}")
            raise CatalogAPIError(message, status=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise CatalogAPIError("Catalog response is not JSON") from exc

    @staticmethod
    def _validate[M: pydantic.BaseModel](model: type[M], payload: object) -> M:
        if not isinstance(payload, dict):
            raise CatalogAPIError("Unexpected catalog response payload")
        try:
            return model.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise CatalogAPIError(f"Unexpected catalog response payload: {exc}") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        payload = ErrorResponse.model_validate(response.json())
    except (ValueError, pydantic.ValidationError):
        return response.reason_phrase or f"HTTP {response.status_code}"
    return payload.message or payload.error or f"HTTP {response.status_code}"


if TYPE_CHECKING:
    _catalog_check: CatalogSource = JikanCatalog()
