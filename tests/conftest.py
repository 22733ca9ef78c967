from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from animesync.adapters.local_bus import InProcessPushBus
from animesync.adapters.sqlalchemy import SqlAlchemyRowStore, shutdown, startup
from animesync.domain.sync import LocalCache
from tests.support.builders import USER_ID
from tests.support.fakes import FakeRowStore

os.environ.setdefault("ANIMESYNC_DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture
def bus() -> InProcessPushBus:
    return InProcessPushBus()


@pytest.fixture
def fake_store() -> FakeRowStore:
    return FakeRowStore()


@pytest.fixture
def cache() -> LocalCache:
    return LocalCache(user_id=USER_ID)


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = startup(database_uri="sqlite+pysqlite:///:memory:", force=True)
    try:
        yield engine
    finally:
        shutdown()


@pytest.fixture
def sqlite_store(sqlite_engine: Engine, bus: InProcessPushBus) -> SqlAlchemyRowStore:
    return SqlAlchemyRowStore(sqlite_engine, publisher=bus)
