"""Errors raised while reading animesync settings from the environment."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """A setting is present but cannot be used."""


class MissingConfigurationError(ConfigurationError):
    """Required settings are unset or blank."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = tuple(sorted(names))
        super().__init__(f"Missing configuration for: {', '.join(self.names)}")


class InvalidSettingError(ConfigurationError):
    def __init__(self, name: str, raw: str, expected: str) -> None:
        self.name = name
        self.raw = raw
        super().__init__(f"{name} must be {expected}, got {raw!r}")
