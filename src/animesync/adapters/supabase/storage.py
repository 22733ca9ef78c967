"""Public object storage bucket on the managed backend."""

from __future__ import annotations

from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from animesync.adapters.http_resilience import LazyClient
from animesync.config.backend import get_backend_config
from animesync.domain.errors import RemoteError
from animesync.domain.ports import ObjectStorage

from .errors import raise_for_backend

if TYPE_CHECKING:
    from types import TracebackType

    from animesync.adapters.http_resilience import ClientFactory
    from animesync.config.backend import BackendConfig

log = getLogger(__name__)


class StorageBucket:
    """Uploads objects into one bucket and hands back their public URLs."""

    def __init__(
        self,
        *,
        config: BackendConfig | None = None,
        bucket: str | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config or get_backend_config()
        self.bucket = bucket or self._config.avatar_bucket
        resilience = replace(
            self._config.resilience,
            base_url=self._config.storage_url,
            default_headers=self._config.auth_headers(),
        )
        self._client = LazyClient(resilience, client_factory)

    async def __aenter__(self) -> StorageBucket:
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

    def object_path(self, path: str) -> str:
        return f"{quote(self.bucket)}/{quote(path.lstrip('/'))}"

    def public_url(self, path: str) -> str:
        return f"{self._config.storage_url}/object/public/{self.object_path(path)}"

    async def upload(self, path: str, content: bytes, *, content_type: str) -> str:
        context = f"upload {path} to {self.bucket}"
        try:
            response = await self._client.get().post(
                f"object/{self.object_path(path)}",
                content=content,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
        except httpx.HTTPError as exc:
            raise RemoteError(f"{context} failed: {exc}") from exc
        raise_for_backend(response, context=context)
        log.debug("Uploaded %s bytes to %s/%s", len(content), self.bucket, path)
        return self.public_url(path)


if TYPE_CHECKING:
    _storage_check: ObjectStorage = StorageBucket()
