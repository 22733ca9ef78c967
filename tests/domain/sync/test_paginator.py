from __future__ import annotations

import asyncio

from animesync.domain.model import InteractionStatus
from animesync.domain.outcome import Failure, FailureKind, Success
from animesync.domain.sync import CatalogPaginator, InteractionStore
from tests.support.fakes import FakeCatalog, remote_error


def _ids(paginator: CatalogPaginator) -> list[int]:
    return [item.id for item in paginator.items]


def test_pages_merge_without_repeated_ids() -> None:
    catalog = FakeCatalog([[1, 2, 3], [3, 4], [5]])
    paginator = CatalogPaginator(catalog.fetch_top)

    async def scenario() -> None:
        await paginator.load_page(1)
        while paginator.has_more:
            await paginator.load_more()

    asyncio.run(scenario())

    assert _ids(paginator) == [1, 2, 3, 4, 5]
    assert paginator.page == 3
    assert paginator.has_more is False
    assert catalog.requested == [1, 2, 3]


def test_reloading_page_one_replaces_items() -> None:
    catalog = FakeCatalog([[1, 2], [3]])
    paginator = CatalogPaginator(catalog.fetch_top)

    async def scenario() -> None:
        await paginator.load_page(1)
        await paginator.load_more()
        catalog.pages[0] = [7, 1]
        await paginator.load_page(1)

    asyncio.run(scenario())

    assert _ids(paginator) == [7, 1]
    assert paginator.page == 1


def test_load_more_is_noop_while_fetch_in_flight() -> None:
    catalog = FakeCatalog([[1], [2], [3]])
    paginator = CatalogPaginator(catalog.fetch_top)

    async def scenario() -> None:
        gate = catalog.hold()
        first = asyncio.create_task(paginator.load_more())
        await asyncio.sleep(0)

        assert paginator.loading is True
        assert await paginator.load_more() is None

        gate.set()
        await first

    asyncio.run(scenario())

    assert catalog.requested == [1]
    assert _ids(paginator) == [1]


def test_result_after_reset_is_discarded() -> None:
    catalog = FakeCatalog([[1, 2]])
    paginator = CatalogPaginator(catalog.fetch_top)

    async def scenario() -> None:
        gate = catalog.hold()
        pending = asyncio.create_task(paginator.load_page(1))
        await asyncio.sleep(0)
        paginator.reset()
        gate.set()
        outcome = await pending
        assert isinstance(outcome, Success)

    asyncio.run(scenario())

    assert paginator.items == ()
    assert paginator.page == 0
    assert paginator.loading is False


def test_failed_page_keeps_items_and_allows_retry() -> None:
    catalog = FakeCatalog([[1], [2]])
    paginator = CatalogPaginator(catalog.fetch_top, name="top anime")

    async def scenario() -> None:
        await paginator.load_page(1)
        catalog.failures.append(remote_error())

        outcome = await paginator.load_more()
        assert isinstance(outcome, Failure)
        assert outcome.kind is FailureKind.RECOVERABLE
        assert outcome.message == "Failed to load top anime page 2"
        assert _ids(paginator) == [1]
        assert paginator.loading is False

        assert isinstance(await paginator.load_more(), Success)

    asyncio.run(scenario())

    assert _ids(paginator) == [1, 2]


def test_invalid_page_and_closed_browser_are_refused() -> None:
    catalog = FakeCatalog([[1]])
    paginator = CatalogPaginator(catalog.fetch_top)

    async def scenario() -> None:
        zero = await paginator.load_page(0)
        assert isinstance(zero, Failure)
        assert zero.kind is FailureKind.INVALID

        paginator.close()
        closed = await paginator.load_page(1)
        assert isinstance(closed, Failure)
        assert await paginator.load_more() is None

    asyncio.run(scenario())

    assert catalog.requested == []


def test_annotated_items_carry_interaction_status() -> None:
    catalog = FakeCatalog([[1, 2]])
    interactions = InteractionStore("user-1")
    interactions.put(2, InteractionStatus.FAVORITE)
    paginator = CatalogPaginator(catalog.fetch_current_season, interactions=interactions)

    asyncio.run(paginator.load_page(1))

    assert [(item.id, status) for item, status in paginator.annotated()] == [
        (1, None),
        (2, InteractionStatus.FAVORITE),
    ]
