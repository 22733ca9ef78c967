"""Managed backend (row store, object storage) configuration values."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

DEFAULT_AVATAR_BUCKET = "avatars"
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif"})
BACKEND_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True, slots=True)
class UploadPolicy:
    max_bytes: int = MAX_UPLOAD_BYTES
    allowed_content_types: frozenset[str] = ALLOWED_IMAGE_TYPES


@dataclass(frozen=True)
class BackendConfig:
    """Holds the managed backend endpoint and credentials."""

    url: str
    anon_key: str
    resilience: ResilienceConfig
    access_token: str | None = None
    avatar_bucket: str = DEFAULT_AVATAR_BUCKET
    uploads: UploadPolicy = field(default_factory=UploadPolicy)

    @property
    def rest_url(self) -> str:
        return f"{self.url.rstrip('/')}/rest/v1"

    @property
    def storage_url(self) -> str:
        return f"{self.url.rstrip('/')}/storage/v1"

    def auth_headers(self) -> dict[str, str]:
        bearer = self.access_token or self.anon_key
        return {"apikey": self.anon_key, "Authorization": f"Bearer {bearer}"}


def get_backend_config(*, resilience: ResilienceConfig | None = None) -> BackendConfig:
    values = require_env_vars(("SUPABASE_URL", "SUPABASE_ANON_KEY"))
    return BackendConfig(
        url=values["SUPABASE_URL"],
        anon_key=values["SUPABASE_ANON_KEY"],
        access_token=optional_env_var("SUPABASE_ACCESS_TOKEN"),
        avatar_bucket=optional_env_var("ANIMESYNC_AVATAR_BUCKET", DEFAULT_AVATAR_BUCKET)
        or DEFAULT_AVATAR_BUCKET,
        resilience=resilience
        or ResilienceConfig(
            name="backend",
            timeout_seconds=BACKEND_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            # row reads must never be served stale
            cache=None,
        ),
    )
