import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from config import Settings
from core.cache import TTLCache
from core.dom import Anchor
from core.errors import CountMismatchError, InvalidRequestError
from core.listing import PriceSource
from core.paginator import PaginationWalker
from core.scanner import MAIN_LINK_SELECTOR, ListPageScanner
from core.service import ScrapeService
from fakes import BASE_URL, FakeDocument, FakeFetcher, FakeNode, detail_page, list_page, no_sleep, page_url


def make_service(routes: dict, **overrides) -> tuple[ScrapeService, FakeFetcher]:
    settings = Settings(_env_file=None, page_delay_min_ms=0, page_delay_max_ms=0, **overrides)
    fetcher = FakeFetcher(routes)
    walker = PaginationWalker(ListPageScanner(fetcher), delay_range=(0, 0), sleep=no_sleep)
    return ScrapeService(fetcher, settings, walker=walker), fetcher


def priceless_page(url: str, ids: list[str], expected: int) -> FakeDocument:
    anchors = [Anchor(href=f"/rolex/w--id{i}.htm", in_main=True, card=FakeNode()) for i in ids]
    return FakeDocument(url, anchors={MAIN_LINK_SELECTOR: anchors}, body=f"{expected} annonces")


class TestScrape:
    def test_complete_batch_with_enrichment(self):
        routes = {
            page_url(1, 2): priceless_page(page_url(1, 2), ["1", "2"], expected=3),
            page_url(2, 2): list_page(page_url(2, 2), ["3"], expected_count=3),
            "https://www.chrono24.fr/rolex/w--id1.htm": detail_page("d1", meta_price="4200"),
            "https://www.chrono24.fr/rolex/w--id2.htm": detail_page("d2", body="Prix sur demande"),
        }
        service, fetcher = make_service(routes)
        result = asyncio.run(service.scrape(service.build_request(BASE_URL, page_size=2, max_pages=5)))

        assert result.count == 3
        assert result.partial is False
        assert result.warning is None
        by_id = {r.id: r for r in result.items}
        assert (by_id["1"].price, by_id["1"].price_source) == (4200, PriceSource.DETAIL_META)
        assert by_id["2"].price_source is PriceSource.ON_REQUEST
        assert by_id["3"].price_source is PriceSource.CARD_DOM

    def test_partial_batch_has_warning(self):
        routes = {page_url(1, 100): list_page(page_url(1, 100), [str(i) for i in range(100)], expected_count=250)}
        service, _ = make_service(routes)
        result = asyncio.run(service.scrape(service.build_request(BASE_URL, page_size=100, max_pages=1)))

        assert result.partial is True
        assert result.total_pages == 3
        assert result.pages_scraped == 1
        assert "Partial result" in result.warning
        assert result.to_dict()["partial"] is True

    def test_inconsistent_batch_fails_before_detail_fetches(self):
        routes = {page_url(1, 100): priceless_page(page_url(1, 100), [str(i) for i in range(48)], expected=50)}
        service, fetcher = make_service(routes)

        with pytest.raises(CountMismatchError) as exc_info:
            asyncio.run(service.scrape(service.build_request(BASE_URL, page_size=100, max_pages=5)))

        assert exc_info.value.meta["expectedCount"] == 50
        assert exc_info.value.meta["got"] == 48
        assert fetcher.calls == [page_url(1, 100)]

    def test_results_are_cached_per_request_signature(self):
        routes = {page_url(1, 2): list_page(page_url(1, 2), ["1", "2"], expected_count=2)}
        service, fetcher = make_service(routes)
        request = service.build_request(BASE_URL, page_size=2, max_pages=5)

        first = asyncio.run(service.scrape(request))
        second = asyncio.run(service.scrape(request))

        assert first.from_cache is False
        assert second.from_cache is True
        assert len(fetcher.calls) == 1

        asyncio.run(service.scrape(service.build_request(BASE_URL, page_size=2, max_pages=5, no_cache=True)))
        assert len(fetcher.calls) == 2

        assert service.clear_cache() == 1
        asyncio.run(service.scrape(request))
        assert len(fetcher.calls) == 3

    def test_close_releases_fetcher(self):
        service, fetcher = make_service({})
        asyncio.run(service.close())
        assert fetcher.closed is True


class TestBuildRequest:
    def test_defaults(self):
        service, _ = make_service({}, default_page_size=60, default_max_pages=3)
        request = service.build_request(BASE_URL)
        assert (request.page_size, request.max_pages, request.no_cache) == (60, 3, False)

    @pytest.mark.parametrize("url", ["", "ftp://www.chrono24.fr/x", "https://www.example.com/search"])
    def test_rejects_foreign_urls(self, url):
        service, _ = make_service({})
        with pytest.raises(InvalidRequestError):
            service.build_request(url)


class TestTTLCache:
    def test_expiry(self):
        now = [0.0]
        cache = TTLCache(10, clock=lambda: now[0])
        cache.set("a", 1)
        now[0] = 5.0
        assert cache.get("a") == 1
        now[0] = 11.0
        assert cache.get("a") is None

    def test_purge_expired(self):
        now = [0.0]
        cache = TTLCache(10, clock=lambda: now[0])
        cache.set("old", 1)
        now[0] = 8.0
        cache.set("new", 2)
        now[0] = 12.0
        assert cache.purge_expired() == 1
        assert len(cache) == 1
