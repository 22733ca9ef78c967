"""Anime catalog (Jikan) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_JIKAN_BASE_URL = "https://api.jikan.moe/v4"
JIKAN_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True, slots=True)
class CatalogConfig:
    resilience: ResilienceConfig

    @property
    def base_url(self) -> str:
        return self.resilience.base_url or DEFAULT_JIKAN_BASE_URL


def get_catalog_config(*, resilience: ResilienceConfig | None = None) -> CatalogConfig:
    base_url = optional_env_var("JIKAN_BASE_URL", DEFAULT_JIKAN_BASE_URL)
    return CatalogConfig(
        resilience=resilience
        or ResilienceConfig(
            name="jikan",
            base_url=base_url,
            timeout_seconds=JIKAN_TIMEOUT_SECONDS,
            # Jikan allows 3 requests per second and 60 per minute
            ratelimit=RateLimit(max_calls=3, per_seconds=1.0),
            retry=RetryPolicy(total=4),
            cache=CacheConfig(enabled=True, backend="memory", default_ttl_seconds=300.0),
        )
    )
