"""Domain port definitions for adapters."""

from __future__ import annotations

from .catalog import CatalogSource
from .realtime import (
    ChangeEvent,
    ChangePublisher,
    Channel,
    ErrorListener,
    EventListener,
    PushBus,
    Topic,
)
from .store import ObjectStorage, RowStore

__all__ = [
    "CatalogSource",
    "ChangeEvent",
    "ChangePublisher",
    "Channel",
    "ErrorListener",
    "EventListener",
    "ObjectStorage",
    "PushBus",
    "RowStore",
    "Topic",
]
