import asyncio
import inspect
import logging
import time
from collections import Counter
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field

from core.dom import PageFetcher
from core.errors import FetchTimeout
from core.extract import extract_detail_price
from core.listing import ListingRecord, PriceHit, PriceSource

log = logging.getLogger(__name__)

ProgressSink = Callable[[int, int], Awaitable[None] | None]


@dataclass
class EnrichmentReport:
    total: int = 0
    processed: int = 0
    skipped: int = 0
    sources: Counter = field(default_factory=Counter)

    @property
    def done(self) -> int:
        """Records settled so far, whether looked up or skipped by the deadline."""
        return self.processed + self.skipped

    @property
    def priced(self) -> int:
        return sum(n for source, n in self.sources.items() if PriceSource(source).has_price)


def select_pending(records: Iterable[ListingRecord]) -> list[ListingRecord]:
    """Only records without any card-level verdict go to the detail page."""
    return [r for r in records if r.needs_detail]


class DetailEnricher:
    def __init__(
        self,
        fetcher: PageFetcher,
        concurrency: int = 4,
        timeout_ms: int = 30000,
        retries: int = 1,
        retry_backoff: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.fetcher = fetcher
        self.concurrency = concurrency
        self.timeout_ms = timeout_ms
        self.retries = retries
        self.retry_backoff = retry_backoff
        self._sleep = sleep
        self._clock = clock

    async def lookup(self, url: str) -> PriceHit:
        async with self.fetcher.fetch(url, self.timeout_ms) as doc:
            return await extract_detail_price(doc)

    async def enrich_one(self, record: ListingRecord) -> None:
        """Resolve one record's price in place. Never raises."""
        attempt = 0
        while True:
            try:
                hit = await self.lookup(record.url)
            except FetchTimeout as e:
                if attempt < self.retries:
                    attempt += 1
                    log.info(f"Detail timeout for {record.id}, retry {attempt}/{self.retries}")
                    await self._sleep(self.retry_backoff)
                    continue
                log.warning(f"Detail timeout for {record.id}, giving up: {e}")
                record.apply_price(PriceHit(None, PriceSource.DETAIL_TIMEOUT))
                return
            except Exception as e:
                log.warning(f"Detail fetch failed for {record.id}: {e}")
                record.apply_price(PriceHit(None, PriceSource.DETAIL_ERROR))
                return

            record.apply_price(hit)
            return

    async def enrich(
        self,
        records: list[ListingRecord],
        on_progress: ProgressSink | None = None,
        deadline: float | None = None,
    ) -> EnrichmentReport:
        """Enrich ``missing`` prices with at most ``concurrency`` fetches in flight.

        Records past ``deadline`` (a ``clock()`` value) are left untouched and
        counted as skipped; they still count towards ``on_progress``.
        """
        pending = select_pending(records)
        report = EnrichmentReport(total=len(pending))
        if not pending:
            return report

        queue: asyncio.Queue[ListingRecord] = asyncio.Queue()
        for record in pending:
            queue.put_nowait(record)

        async def worker() -> None:
            while True:
                try:
                    record = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if deadline is not None and self._clock() >= deadline:
                    report.skipped += 1
                else:
                    await self.enrich_one(record)
                    report.processed += 1
                    report.sources[record.price_source.value] += 1
                if on_progress:
                    result = on_progress(report.done, report.total)
                    if inspect.isawaitable(result):
                        await result

        log.info(f"Enriching {len(pending)} listings from detail pages (concurrency {self.concurrency})")
        workers = [asyncio.create_task(worker()) for _ in range(min(self.concurrency, len(pending)))]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            raise

        log.info(
            f"Detail enrichment: {report.priced}/{report.total} priced, "
            f"{report.skipped} skipped, sources={dict(report.sources)}"
        )
        return report
