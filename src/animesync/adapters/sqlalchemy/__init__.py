"""SQLAlchemy-backed local row store."""

from __future__ import annotations

from .store import (
    SqlAlchemyRowStore,
    StartupError,
    configured_engine,
    create_local_engine,
    shutdown,
    startup,
)
from .tables import TABLES, metadata

__all__ = [
    "TABLES",
    "SqlAlchemyRowStore",
    "StartupError",
    "configured_engine",
    "create_local_engine",
    "metadata",
    "shutdown",
    "startup",
]
