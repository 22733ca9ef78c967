"""Typed readers over ``os.environ``.

Blank values count as unset everywhere, so an exported but empty variable
behaves like a missing one.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidSettingError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable


def _read(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    return value.strip() or None


def require_env_vars(names: Iterable[str]) -> dict[str, str]:
    """Read every name at once so a single error reports all gaps."""

    found = {name: _read(name) for name in names}
    missing = [name for name, value in found.items() if value is None]
    if missing:
        raise MissingConfigurationError(missing)
    return {name: value for name, value in found.items() if value is not None}


def require_env_var(name: str) -> str:
    return require_env_vars([name])[name]


def optional_env_var(name: str, default: str | None = None) -> str | None:
    value = _read(name)
    return default if value is None else value


def positive_int_env_var(name: str, default: int) -> int:
    raw = _read(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidSettingError(name, raw, "an integer") from exc
    if value < 1:
        raise InvalidSettingError(name, raw, "at least 1")
    return value
