"""Best-effort field extraction as ordered strategy chains.

Each strategy inspects a ``Node`` and returns a value or ``None``; the first
non-``None`` value wins. Strategy errors are logged and treated as a miss, so
no extractor here ever raises.
"""

import json
import logging
import re
from collections.abc import Awaitable, Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from core.dom import Node
from core.listing import MISSING_PRICE, PriceHit, PriceSource
from core.urls import normalize_text

log = logging.getLogger(__name__)

T = TypeVar("T")
Strategy = Callable[[Node], Awaitable[T | None]]

TITLE_SELECTORS = (".article-title", "h3", "h2")
COUNTRY_SELECTORS = ('[class*="country"]', '[class*="location"]')
CARD_PRICE_SELECTORS = ('[data-testid="price"]', '[class*="price"]')
DETAIL_PRICE_SELECTORS = (
    '[data-testid="price"]',
    ".js-price-shipping-country",
    '[class*="price"]',
)
META_PRICE_SELECTOR = 'meta[itemprop="price"]'
JSONLD_SELECTOR = 'script[type="application/ld+json"]'

ON_REQUEST_RE = re.compile(r"prix sur demande|price on request", re.IGNORECASE)
SPONSORED_RE = re.compile(r"sponsor|promoted", re.IGNORECASE)
SHIPPING_RE = re.compile(r"frais de port|shipping", re.IGNORECASE)
EURO_RE = re.compile(r"(\d{1,3}(?:[ .,]\d{3})+|\d+)(?:[.,]\d{1,2})?\s?€")
EXPECTED_COUNT_RE = re.compile(
    r"(\d{1,3}(?:[\u00a0\u202f.,]\d{3})+|\d+)[^\S\n]+"
    r"(?:annonces?|résultats?|montres?|listings?|results?)\b",
    re.IGNORECASE,
)


async def first_match(strategies: Iterable[Strategy[T]], node: Node) -> T | None:
    for strategy in strategies:
        try:
            value = await strategy(node)
        except Exception as e:
            log.debug(f"Strategy {getattr(strategy, '__name__', strategy)} failed: {e}")
            continue
        if value is not None:
            return value
    return None


def first_text(selectors: Sequence[str]) -> list[Strategy[str]]:
    def make(selector: str) -> Strategy[str]:
        async def strategy(node: Node) -> str | None:
            return normalize_text(await node.text_of(selector)) or None

        strategy.__name__ = f"text[{selector}]"
        return strategy

    return [make(s) for s in selectors]


# === Number parsing ===


def parse_digits(value: Any) -> int | None:
    """Positive integer from a machine-readable price ("12500.00" -> 12500)."""
    if value is None:
        return None
    text = str(value).strip()
    # Drop a decimal part so "12500.00" does not become 1250000.
    text = re.sub(r"[.,]\d{1,2}$", "", text)
    digits = re.sub(r"[^\d]", "", text)
    if not digits:
        return None
    number = int(digits)
    return number if number > 0 else None


def parse_euro(text: str | None) -> int | None:
    match = EURO_RE.search(normalize_text(text))
    if not match:
        return None
    number = int(re.sub(r"[ .,]", "", match.group(1)))
    return number if number > 0 else None


def read_expected_count(text: str | None) -> int | None:
    """Site-reported total from page text; never joins numbers across lines."""
    match = EXPECTED_COUNT_RE.search(text or "")
    if not match:
        return None
    return int(re.sub(r"[^\d]", "", match.group(1)))


# === Card fields ===


@dataclass
class CardFields:
    title: str | None
    country: str | None
    is_sponsored: bool
    price: PriceHit


async def _meta_price(node: Node, source: PriceSource) -> PriceHit | None:
    price = parse_digits(await node.attribute(META_PRICE_SELECTOR, "content"))
    return PriceHit(price, source) if price else None


async def card_meta_price(card: Node) -> PriceHit | None:
    return await _meta_price(card, PriceSource.CARD_META)


async def card_on_request(card: Node) -> PriceHit | None:
    if ON_REQUEST_RE.search(await card.inner_text()):
        return PriceHit(None, PriceSource.ON_REQUEST)
    return None


async def card_dom_price(card: Node) -> PriceHit | None:
    for selector in CARD_PRICE_SELECTORS:
        text = normalize_text(await card.text_of(selector))
        if not text or text.startswith("+") or SHIPPING_RE.search(text):
            continue
        if ON_REQUEST_RE.search(text):
            return PriceHit(None, PriceSource.ON_REQUEST)
        price = parse_euro(text)
        if price:
            return PriceHit(price, PriceSource.CARD_DOM)
    return None


async def card_sponsored(card: Node) -> bool | None:
    return True if SPONSORED_RE.search(await card.inner_text()) else None


CARD_PRICE_STRATEGIES: list[Strategy[PriceHit]] = [card_meta_price, card_on_request, card_dom_price]
TITLE_STRATEGIES = first_text(TITLE_SELECTORS)
COUNTRY_STRATEGIES = first_text(COUNTRY_SELECTORS)


async def extract_card_fields(card: Node) -> CardFields:
    return CardFields(
        title=await first_match(TITLE_STRATEGIES, card),
        country=await first_match(COUNTRY_STRATEGIES, card),
        is_sponsored=bool(await first_match([card_sponsored], card)),
        price=await first_match(CARD_PRICE_STRATEGIES, card) or MISSING_PRICE,
    )


# === Detail page price ===


def _jsonld_nodes(data: Any) -> Iterator[dict]:
    if isinstance(data, list):
        for entry in data:
            yield from _jsonld_nodes(entry)
    elif isinstance(data, dict):
        yield data
        graph = data.get("@graph")
        if isinstance(graph, list):
            yield from _jsonld_nodes(graph)


def _offer_price(node: dict) -> int | None:
    offers = node.get("offers")
    for offer in offers if isinstance(offers, list) else [offers]:
        if isinstance(offer, dict):
            price = parse_digits(offer.get("price") or offer.get("lowPrice"))
            if price:
                return price
    return None


def jsonld_price(blocks: Iterable[str]) -> int | None:
    for raw in blocks:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            continue
        for node in _jsonld_nodes(data):
            price = _offer_price(node)
            if price:
                return price
    return None


async def detail_meta_price(doc: Node) -> PriceHit | None:
    return await _meta_price(doc, PriceSource.DETAIL_META)


async def detail_jsonld_price(doc: Node) -> PriceHit | None:
    price = jsonld_price(await doc.texts_of(JSONLD_SELECTOR))
    return PriceHit(price, PriceSource.DETAIL_JSONLD) if price else None


async def detail_dom_price(doc: Node) -> PriceHit | None:
    for selector in DETAIL_PRICE_SELECTORS:
        text = normalize_text(await doc.text_of(selector))
        if not text or SHIPPING_RE.search(text):
            continue
        price = parse_euro(text)
        if price:
            return PriceHit(price, PriceSource.DETAIL_DOM)
    return None


async def detail_on_request(doc: Node) -> PriceHit | None:
    if ON_REQUEST_RE.search(await doc.inner_text()):
        return PriceHit(None, PriceSource.ON_REQUEST)
    return None


DETAIL_PRICE_STRATEGIES: list[Strategy[PriceHit]] = [
    detail_meta_price,
    detail_jsonld_price,
    detail_dom_price,
    detail_on_request,
]


async def extract_detail_price(doc: Node) -> PriceHit:
    return await first_match(DETAIL_PRICE_STRATEGIES, doc) or MISSING_PRICE
