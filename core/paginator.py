import asyncio
import logging
import math
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from core.errors import FetchError
from core.listing import ListingRecord
from core.scanner import ListPageScanner
from core.urls import with_params

log = logging.getLogger(__name__)


@dataclass
class WalkResult:
    expected_count: int | None
    page_size: int
    total_pages: int
    pages_scraped: int
    items: list[ListingRecord] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.pages_scraped != self.total_pages


def pages_needed(expected_count: int | None, page_size: int) -> int:
    if not expected_count or expected_count <= 0:
        return 1
    return math.ceil(expected_count / page_size)


def merge_new(into: dict[str, ListingRecord], items: list[ListingRecord]) -> int:
    """First write wins: only ids not already present are added."""
    added = 0
    for item in items:
        if item.id not in into:
            into[item.id] = item
            added += 1
    return added


class PaginationWalker:
    def __init__(
        self,
        scanner: ListPageScanner,
        delay_range: tuple[float, float] = (0.5, 1.7),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.scanner = scanner
        self.delay_range = delay_range
        self._sleep = sleep

    async def _pause(self) -> None:
        low, high = self.delay_range
        if high <= 0:
            return
        await self._sleep(random.uniform(low, high))

    async def walk(self, url: str, page_size: int, max_pages: int) -> WalkResult:
        # Page 1 failures propagate: without it there is no expected count.
        first = await self.scanner.scan(with_params(url, pageSize=page_size, page=1))

        total_pages = pages_needed(first.expected_count, page_size)
        to_walk = min(max_pages, total_pages)

        merged: dict[str, ListingRecord] = {}
        merge_new(merged, first.items)
        pages_scraped = 1

        for page in range(2, to_walk + 1):
            await self._pause()
            try:
                result = await self.scanner.scan(with_params(url, pageSize=page_size, page=page))
            except FetchError as e:
                log.warning(f"Stopping walk at page {page}/{to_walk}: {e}")
                break
            added = merge_new(merged, result.items)
            pages_scraped = page
            log.info(f"Page {page}/{to_walk}: {added} new listings ({len(merged)} total)")

        return WalkResult(
            expected_count=first.expected_count,
            page_size=page_size,
            total_pages=total_pages,
            pages_scraped=pages_scraped,
            items=list(merged.values()),
        )
