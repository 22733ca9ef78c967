"""Where the local row database and the catalog HTTP cache live on disk."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "animesync"
DEFAULT_DB_FILENAME: Final[str] = "animesync.db"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"
DATA_DIR_ENV: Final[str] = "ANIMESYNC_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "ANIMESYNC_DATABASE_URI"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def resolve_data_dir(self, *, create: bool = False) -> Path:
        path = self.data_dir.expanduser().resolve()
        if create:
            path.mkdir(parents=True, exist_ok=True)
        return path

    def file_path(self, filename: str) -> Path:
        return self.resolve_data_dir(create=True) / filename

    def http_cache_path(self) -> Path:
        return self.file_path(HTTP_CACHE_FILENAME)

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.file_path(DEFAULT_DB_FILENAME)}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _platform_data_home() -> Path:
    if os.name == "nt":
        local = optional_env_var("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = optional_env_var("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    override = optional_env_var(DATA_DIR_ENV)
    data_dir = Path(override) if override else _platform_data_home() / APP_DIR_NAME
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """Explicit URI from the environment, else a SQLite file in the data dir."""

    uri = optional_env_var(DATABASE_URI_ENV)
    if uri is None:
        uri = (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri)
