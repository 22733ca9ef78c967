"""Application configuration helpers."""

from __future__ import annotations

from .backend import (
    ALLOWED_IMAGE_TYPES,
    MAX_UPLOAD_BYTES,
    BackendConfig,
    UploadPolicy,
    get_backend_config,
)
from .catalog import DEFAULT_JIKAN_BASE_URL, CatalogConfig, get_catalog_config
from .env import optional_env_var, positive_int_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, InvalidSettingError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "ALLOWED_IMAGE_TYPES",
    "DEFAULT_JIKAN_BASE_URL",
    "MAX_UPLOAD_BYTES",
    "BackendConfig",
    "CacheConfig",
    "CatalogConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidSettingError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "UploadPolicy",
    "configure_logging",
    "get_backend_config",
    "get_catalog_config",
    "get_database_config",
    "get_storage_config",
    "get_sync_config",
    "optional_env_var",
    "positive_int_env_var",
    "require_env_var",
    "require_env_vars",
]
