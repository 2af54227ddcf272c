import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from urllib.parse import urlparse

from config import Settings, settings as default_settings
from core.cache import TTLCache, request_key
from core.dom import PageFetcher
from core.enricher import DetailEnricher, EnrichmentReport, ProgressSink
from core.errors import InvalidRequestError
from core.listing import ListingRecord, ScrapeResult
from core.paginator import PaginationWalker
from core.reconcile import ensure_consistent, reconcile
from core.scanner import ListPageScanner

log = logging.getLogger(__name__)


@dataclass
class ScrapeRequest:
    url: str
    page_size: int
    max_pages: int
    no_cache: bool = False

    @property
    def cache_key(self) -> str:
        return request_key(self.url, self.page_size, self.max_pages)


class ScrapeService:
    """Owns the page fetcher and result cache for the lifetime of the process."""

    def __init__(
        self,
        fetcher: PageFetcher,
        settings: Settings | None = None,
        cache: TTLCache[ScrapeResult] | None = None,
        walker: PaginationWalker | None = None,
        enricher: DetailEnricher | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or default_settings
        self.fetcher = fetcher
        self.cache = cache if cache is not None else TTLCache(self.settings.cache_ttl_seconds)
        self.walker = walker or PaginationWalker(
            ListPageScanner(
                fetcher,
                goto_timeout_ms=self.settings.page_goto_timeout_ms,
                link_wait_timeout_ms=self.settings.link_wait_timeout_ms,
            ),
            delay_range=self.settings.page_delay_range,
        )
        self.enricher = enricher or DetailEnricher(
            fetcher,
            concurrency=self.settings.detail_concurrency,
            timeout_ms=self.settings.detail_timeout_ms,
            retries=self.settings.detail_retry_count,
            retry_backoff=self.settings.detail_retry_backoff_seconds,
            clock=clock,
        )
        self._clock = clock

    def build_request(
        self,
        url: str,
        page_size: int | None = None,
        max_pages: int | None = None,
        no_cache: bool = False,
    ) -> ScrapeRequest:
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or self.settings.allowed_host not in parsed.netloc:
            raise InvalidRequestError(f"Invalid {self.settings.allowed_host} URL: {url!r}")
        page_size = page_size or self.settings.default_page_size
        max_pages = max_pages or self.settings.default_max_pages
        if page_size < 1 or max_pages < 1:
            raise InvalidRequestError("pageSize and maxPages must be positive")
        return ScrapeRequest(url=url, page_size=page_size, max_pages=max_pages, no_cache=no_cache)

    def _deadline(self) -> float | None:
        budget = self.settings.enrich_time_budget_seconds
        return self._clock() + budget if budget else None

    async def scrape(self, request: ScrapeRequest) -> ScrapeResult:
        if not request.no_cache:
            cached = self.cache.get(request.cache_key)
            if cached is not None:
                log.info(f"Cache hit for {request.url}")
                return replace(cached, from_cache=True)

        walk = await self.walker.walk(request.url, request.page_size, request.max_pages)
        verdict = ensure_consistent(reconcile(walk))

        report = await self.enricher.enrich(walk.items, deadline=self._deadline())

        warnings = [verdict.warning] if verdict.warning else []
        if report.skipped:
            warnings.append(f"{report.skipped} listings not enriched: time budget exhausted.")

        result = ScrapeResult(
            expected_count=walk.expected_count,
            page_size=request.page_size,
            pages_scraped=walk.pages_scraped,
            total_pages=walk.total_pages,
            items=walk.items,
            warning=" ".join(warnings) or None,
        )
        log.info(
            f"Scraped {result.count} listings from {result.pages_scraped}/{result.total_pages} pages "
            f"(expected {result.expected_count}, {verdict.outcome.value})"
        )
        self.cache.set(request.cache_key, result)
        return result

    async def enrich(
        self,
        items: list[ListingRecord],
        on_progress: ProgressSink | None = None,
    ) -> EnrichmentReport:
        return await self.enricher.enrich(items, on_progress=on_progress, deadline=self._deadline())

    def clear_cache(self) -> int:
        return self.cache.clear()

    async def close(self) -> None:
        close = getattr(self.fetcher, "close", None)
        if close:
            await close()
