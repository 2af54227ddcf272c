import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from core.errors import FetchError
from core.listing import ListingRecord
from core.paginator import PaginationWalker, merge_new, pages_needed
from core.scanner import MAIN_LINK_SELECTOR, ListPageScanner
from fakes import BASE_URL, FakeDocument, FakeFetcher, card, list_page, listing_anchor, page_url


def walker_for(routes: dict, sleeps: list | None = None) -> tuple[PaginationWalker, FakeFetcher]:
    fetcher = FakeFetcher(routes)

    async def record_sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    walker = PaginationWalker(ListPageScanner(fetcher), delay_range=(0.5, 1.7), sleep=record_sleep)
    return walker, fetcher


def site(page_size: int, pages: dict[int, list[str]], expected: int | None) -> dict:
    return {
        page_url(n, page_size): list_page(page_url(n, page_size), ids, expected_count=expected)
        for n, ids in pages.items()
    }


class TestPagesNeeded:
    def test_values(self):
        assert pages_needed(250, 100) == 3
        assert pages_needed(200, 100) == 2
        assert pages_needed(None, 100) == 1
        assert pages_needed(0, 100) == 1


class TestPaginationWalker:
    def test_overlapping_pages_are_deduplicated(self):
        walker, _ = walker_for(site(3, {1: ["1", "2", "3"], 2: ["3", "4", "5"]}, expected=5))
        result = asyncio.run(walker.walk(BASE_URL, page_size=3, max_pages=10))

        assert result.total_pages == 2
        assert result.pages_scraped == 2
        assert sorted(r.id for r in result.items) == ["1", "2", "3", "4", "5"]
        assert result.partial is False

    def test_page_budget_yields_partial(self):
        pages = {1: [str(i) for i in range(100)], 2: [str(i) for i in range(100, 200)]}
        walker, fetcher = walker_for(site(100, pages, expected=250))
        result = asyncio.run(walker.walk(BASE_URL, page_size=100, max_pages=2))

        assert result.total_pages == 3
        assert result.pages_scraped == 2
        assert result.partial is True
        assert len(result.items) <= 200
        assert page_url(3, 100) not in fetcher.calls

    def test_first_write_wins_across_pages(self):
        routes = site(2, {1: ["1", "2"]}, expected=3)
        later = [listing_anchor("2", node=card(title="Rolex 2 (page 2)")), listing_anchor("3")]
        routes[page_url(2, 2)] = FakeDocument(page_url(2, 2), anchors={MAIN_LINK_SELECTOR: later})
        walker, _ = walker_for(routes)

        result = asyncio.run(walker.walk(BASE_URL, page_size=2, max_pages=5))
        by_id = {r.id: r for r in result.items}
        assert sorted(by_id) == ["1", "2", "3"]
        assert by_id["2"].title == "Rolex 2"

    def test_more_pages_give_a_superset(self):
        routes = site(2, {1: ["1", "2"], 2: ["3", "4"], 3: ["5"]}, expected=5)
        one, _ = walker_for(dict(routes))
        two, _ = walker_for(dict(routes))

        small = asyncio.run(one.walk(BASE_URL, page_size=2, max_pages=1))
        large = asyncio.run(two.walk(BASE_URL, page_size=2, max_pages=2))
        small_ids = {r.id: r for r in small.items}
        large_ids = {r.id: r for r in large.items}

        assert set(small_ids) <= set(large_ids)
        for listing_id, record in small_ids.items():
            assert large_ids[listing_id].price == record.price
            assert large_ids[listing_id].title == record.title

    def test_empty_middle_page_does_not_stop_the_walk(self):
        routes = site(2, {1: ["1", "2"], 3: ["5", "6"]}, expected=6)
        routes[page_url(2, 2)] = FakeDocument(page_url(2, 2))
        walker, _ = walker_for(routes)

        result = asyncio.run(walker.walk(BASE_URL, page_size=2, max_pages=3))
        assert result.pages_scraped == 3
        assert sorted(r.id for r in result.items) == ["1", "2", "5", "6"]

    def test_no_expected_count_walks_one_page(self):
        walker, fetcher = walker_for(site(2, {1: ["1", "2"]}, expected=None))
        result = asyncio.run(walker.walk(BASE_URL, page_size=2, max_pages=5))
        assert (result.total_pages, result.pages_scraped) == (1, 1)
        assert len(fetcher.calls) == 1

    def test_first_page_failure_propagates(self):
        walker, _ = walker_for({page_url(1, 2): FetchError("blocked")})
        with pytest.raises(FetchError):
            asyncio.run(walker.walk(BASE_URL, page_size=2, max_pages=5))

    def test_later_page_failure_ends_walk_early(self):
        routes = site(2, {1: ["1", "2"], 3: ["5"]}, expected=5)
        routes[page_url(2, 2)] = FetchError("reset")
        walker, fetcher = walker_for(routes)

        result = asyncio.run(walker.walk(BASE_URL, page_size=2, max_pages=5))
        assert result.pages_scraped == 1
        assert result.total_pages == 3
        assert result.partial is True
        assert page_url(3, 2) not in fetcher.calls

    def test_later_page_breaking_after_load_ends_walk_early(self):
        class DestroyedContext(FakeDocument):
            async def anchors(self, selector):
                raise FetchError("Execution context was destroyed")

        routes = site(2, {1: ["1", "2"], 3: ["5"]}, expected=5)
        routes[page_url(2, 2)] = DestroyedContext(page_url(2, 2))
        walker, fetcher = walker_for(routes)

        result = asyncio.run(walker.walk(BASE_URL, page_size=2, max_pages=5))
        assert result.pages_scraped == 1
        assert result.partial is True
        assert [i.id for i in result.items] == ["1", "2"]
        assert page_url(3, 2) not in fetcher.calls

    def test_politeness_delay_between_pages(self):
        sleeps: list[float] = []
        walker, _ = walker_for(site(1, {1: ["1"], 2: ["2"], 3: ["3"]}, expected=3), sleeps=sleeps)
        asyncio.run(walker.walk(BASE_URL, page_size=1, max_pages=3))
        assert len(sleeps) == 2
        assert all(0.5 <= s <= 1.7 for s in sleeps)

    def test_zero_delay_skips_sleeping(self):
        calls = []

        async def sleep(seconds):
            calls.append(seconds)

        fetcher = FakeFetcher(site(1, {1: ["1"], 2: ["2"]}, expected=2))
        walker = PaginationWalker(ListPageScanner(fetcher), delay_range=(0, 0), sleep=sleep)
        asyncio.run(walker.walk(BASE_URL, page_size=1, max_pages=2))
        assert calls == []


def test_merge_new_reports_added_count():
    merged = {}
    items = [ListingRecord(id="1", url="u1", title="a"), ListingRecord(id="2", url="u2", title="b")]
    assert merge_new(merged, items) == 2
    assert merge_new(merged, [ListingRecord(id="2", url="u2", title="changed")]) == 0
    assert merged["2"].title == "b"
