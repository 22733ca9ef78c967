"""Incremental, de-duplicated merge of numbered catalog pages."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from animesync.domain.outcome import BOUNDARY_ERRORS, Success, failure_from, invalid

if TYPE_CHECKING:
    from animesync.domain.model import AnimeSummary, CatalogPage, InteractionStatus
    from animesync.domain.outcome import Outcome
    from animesync.domain.ports.catalog import PageFetcher
    from animesync.domain.sync.interactions import InteractionStore

log = getLogger(__name__)


class CatalogPaginator:
    """Holds the merged item sequence of one browsing session.

    Page 1 replaces the sequence, later pages append items whose ids have not
    been seen yet. Results that arrive after :meth:`reset` or :meth:`close` are
    dropped instead of merged.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        *,
        interactions: InteractionStore | None = None,
        name: str = "catalog",
    ) -> None:
        self._fetch_page = fetch_page
        self._interactions = interactions
        self.name = name
        self._items: list[AnimeSummary] = []
        self._ids: set[int] = set()
        self._page = 0
        self._has_more = True
        self._loading = False
        self._generation = 0
        self._closed = False

    @property
    def items(self) -> tuple[AnimeSummary, ...]:
        return tuple(self._items)

    @property
    def page(self) -> int:
        """Number of the last page merged, 0 before the first load."""
        return self._page

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def loading(self) -> bool:
        return self._loading

    def annotated(self) -> list[tuple[AnimeSummary, InteractionStatus | None]]:
        if self._interactions is None:
            return [(item, None) for item in self._items]
        return self._interactions.annotate(self._items)

    async def load_page(self, page_number: int) -> Outcome[CatalogPage]:
        if self._closed:
            return invalid(f"{self.name} browser is closed")
        if page_number < 1:
            return invalid(f"Invalid page number: {page_number}")

        generation = self._generation
        self._loading = True
        try:
            page = await self._fetch_page(page_number)
        except BOUNDARY_ERRORS as exc:
            return failure_from(exc, f"Failed to load {self.name} page {page_number}")
        finally:
            if generation == self._generation:
                self._loading = False

        if generation != self._generation:
            log.debug("Discarding stale %s page %s", self.name, page_number)
            return Success(page)

        self._merge(page_number, page)
        return Success(page)

    async def load_more(self) -> Outcome[CatalogPage] | None:
        """Fetch the next page; ``None`` when a fetch is running or nothing is left."""

        if self._loading or not self._has_more or self._closed:
            return None
        return await self.load_page(self._page + 1)

    def reset(self) -> None:
        self._generation += 1
        self._items.clear()
        self._ids.clear()
        self._page = 0
        self._has_more = True
        self._loading = False

    def close(self) -> None:
        self.reset()
        self._closed = True

    def _merge(self, page_number: int, page: CatalogPage) -> None:
        if page_number == 1:
            self._items.clear()
            self._ids.clear()
        added = 0
        for item in page.items:
            if item.id in self._ids:
                continue
            self._ids.add(item.id)
            self._items.append(item)
            added += 1
        skipped = len(page.items) - added
        if skipped:
            log.debug("Skipped %s repeated ids on %s page %s", skipped, self.name, page_number)
        self._page = page_number
        self._has_more = page.has_next_page
