"""Synchronization defaults for the client-side cache."""

from __future__ import annotations

from dataclasses import dataclass

from .env import positive_int_env_var

DEFAULT_CHANNEL_BUFFER_SIZE = 256
DEFAULT_FEED_LIMIT = 50


@dataclass(frozen=True, slots=True)
class SyncConfig:
    channel_buffer_size: int = DEFAULT_CHANNEL_BUFFER_SIZE
    feed_limit: int = DEFAULT_FEED_LIMIT


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        channel_buffer_size=positive_int_env_var(
            "ANIMESYNC_CHANNEL_BUFFER_SIZE", DEFAULT_CHANNEL_BUFFER_SIZE
        ),
        feed_limit=positive_int_env_var("ANIMESYNC_FEED_LIMIT", DEFAULT_FEED_LIMIT),
    )
