import logging

from core.dom import Anchor, Document, PageFetcher
from core.extract import extract_card_fields, read_expected_count
from core.listing import ListingRecord, PageResult
from core.urls import absolute_url, extract_listing_id, is_listing_href

log = logging.getLogger(__name__)

MAIN_LINK_SELECTOR = 'main a[href*="--id"]'
ANY_LINK_SELECTOR = 'a[href*="--id"]'


class ListPageScanner:
    def __init__(
        self,
        fetcher: PageFetcher,
        goto_timeout_ms: int = 60000,
        link_wait_timeout_ms: int = 30000,
    ):
        self.fetcher = fetcher
        self.goto_timeout_ms = goto_timeout_ms
        self.link_wait_timeout_ms = link_wait_timeout_ms

    async def scan(self, url: str) -> PageResult:
        log.info(f"Scanning list page: {url}")
        async with self.fetcher.fetch(url, self.goto_timeout_ms) as doc:
            anchors = await self._listing_anchors(doc)
            expected_count = read_expected_count(await doc.inner_text())

            seen: set[str] = set()
            items = []
            for anchor in anchors:
                if not is_listing_href(anchor.href):
                    continue
                full_url = absolute_url(anchor.href, doc.url)  # type: ignore[arg-type]
                listing_id = extract_listing_id(full_url)
                if not listing_id or listing_id in seen:
                    continue
                seen.add(listing_id)

                fields = await extract_card_fields(anchor.card)
                record = ListingRecord(
                    id=listing_id,
                    url=full_url,
                    title=fields.title or "",
                    country=fields.country,
                    is_sponsored=fields.is_sponsored,
                )
                record.apply_price(fields.price)
                items.append(record)

        if not items:
            log.warning(f"0 listings found on {url}")
        else:
            log.info(f"Found {len(items)} listings (expected total: {expected_count})")
        return PageResult(expected_count=expected_count, items=items)

    async def _listing_anchors(self, doc: Document) -> list[Anchor]:
        if await doc.wait_for(MAIN_LINK_SELECTOR, self.link_wait_timeout_ms):
            anchors = await doc.anchors(MAIN_LINK_SELECTOR)
            if anchors:
                return anchors

        log.debug(f"No links under <main> on {doc.url}, falling back to page-wide links")
        anchors = await doc.anchors(ANY_LINK_SELECTOR)
        in_main = [a for a in anchors if a.in_main]
        return in_main or anchors
