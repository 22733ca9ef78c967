from __future__ import annotations

import logging
import os

import pytest

from animesync.config import (
    ConfigurationError,
    InvalidSettingError,
    MissingConfigurationError,
    configure_logging,
    get_backend_config,
    get_catalog_config,
    get_sync_config,
    optional_env_var,
    require_env_var,
    require_env_vars,
)
from animesync.config.catalog import DEFAULT_JIKAN_BASE_URL


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", " value ")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert exc.value.names == ("MISSING_A", "MISSING_B")
    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_require_env_var_restores_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEMP_VAR", "123")

    assert os.getenv("TEMP_VAR") == "123"
    assert require_env_var("TEMP_VAR") == "123"


def test_optional_env_var_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLANK_VAR", "  ")

    assert optional_env_var("BLANK_VAR", "fallback") == "fallback"


def test_backend_config_requires_url_and_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)

    with pytest.raises(MissingConfigurationError, match="SUPABASE_ANON_KEY, SUPABASE_URL"):
        get_backend_config()


def test_backend_config_derives_endpoints(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co/")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.delenv("SUPABASE_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("ANIMESYNC_AVATAR_BUCKET", raising=False)

    config = get_backend_config()

    assert config.rest_url == "https://project.supabase.co/rest/v1"
    assert config.storage_url == "https://project.supabase.co/storage/v1"
    assert config.avatar_bucket == "avatars"
    assert config.auth_headers() == {"apikey": "anon", "Authorization": "Bearer anon"}
    assert config.resilience.cache is None
    assert config.uploads.max_bytes == 5 * 1024 * 1024


def test_catalog_config_defaults_and_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JIKAN_BASE_URL", raising=False)
    assert get_catalog_config().base_url == DEFAULT_JIKAN_BASE_URL

    monkeypatch.setenv("JIKAN_BASE_URL", "http://localhost:8080/v4")
    config = get_catalog_config()

    assert config.base_url == "http://localhost:8080/v4"
    assert config.resilience.ratelimit is not None
    assert config.resilience.ratelimit.max_calls == 3


def test_sync_config_reads_positive_integers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANIMESYNC_FEED_LIMIT", "20")
    monkeypatch.delenv("ANIMESYNC_CHANNEL_BUFFER_SIZE", raising=False)

    config = get_sync_config()

    assert config.feed_limit == 20
    assert config.channel_buffer_size == 256


@pytest.mark.parametrize("raw", ["zero", "0", "-3"])
def test_sync_config_rejects_bad_values(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("ANIMESYNC_CHANNEL_BUFFER_SIZE", raw)

    with pytest.raises(ConfigurationError, match="ANIMESYNC_CHANNEL_BUFFER_SIZE"):
        get_sync_config()


def test_invalid_setting_keeps_raw_value(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANIMESYNC_FEED_LIMIT", " 1.5 ")

    with pytest.raises(InvalidSettingError) as exc:
        get_sync_config()

    assert exc.value.name == "ANIMESYNC_FEED_LIMIT"
    assert exc.value.raw == "1.5"


def test_configure_logging_reads_level_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ANIMESYNC_LOG_LEVEL", "debug")

    configure_logging(force=True)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.DEBUG

    configure_logging(level=logging.INFO, force=True)

    assert logging.getLogger("httpx").level == logging.WARNING
