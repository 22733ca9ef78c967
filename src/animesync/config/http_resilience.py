"""Timeout, retry, rate-limit and cache settings shared by the HTTP adapters.

Row writes carry client-generated ids and duplicate inserts surface as
conflicts, so every method may be retried, POST included.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping

RETRYABLE_METHODS = frozenset({"DELETE", "GET", "HEAD", "PATCH", "POST", "PUT"})
RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
RETRYABLE_EXCEPTIONS: tuple[type[httpx.HTTPError], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Bounded exponential backoff; ``total`` counts retries after the first try."""

    total: int = 3
    backoff_factor: float = 0.5
    max_backoff_wait: float = 10.0
    backoff_jitter: float = 1.0
    respect_retry_after_header: bool = True
    allowed_methods: frozenset[str] = RETRYABLE_METHODS
    status_forcelist: frozenset[int] = RETRYABLE_STATUSES
    retry_on_exceptions: tuple[type[httpx.HTTPError], ...] = RETRYABLE_EXCEPTIONS

    @classmethod
    def disabled(cls) -> RetryPolicy:
        return cls(total=0, backoff_factor=0.0, backoff_jitter=0.0)


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class CacheConfig:
    enabled: bool = True
    backend: Literal["sqlite", "memory"] = "memory"
    sqlite_path: str | None = None
    default_ttl_seconds: float | None = None


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 15.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    ratelimit: RateLimit | None = None
    cache: CacheConfig | None = None
    default_headers: Mapping[str, str] | None = None
