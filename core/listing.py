from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PriceSource(str, Enum):
    CARD_META = "card-meta"
    CARD_DOM = "card-dom"
    DETAIL_META = "detail-meta"
    DETAIL_JSONLD = "detail-jsonld"
    DETAIL_DOM = "detail-dom"
    ON_REQUEST = "on-request"
    MISSING = "missing"
    DETAIL_TIMEOUT = "detail-timeout"
    DETAIL_ERROR = "detail-error"

    @property
    def has_price(self) -> bool:
        return self not in PRICELESS_SOURCES


PRICELESS_SOURCES = frozenset(
    {
        PriceSource.ON_REQUEST,
        PriceSource.MISSING,
        PriceSource.DETAIL_TIMEOUT,
        PriceSource.DETAIL_ERROR,
    }
)


@dataclass(frozen=True)
class PriceHit:
    """Outcome of one price strategy: a price with its tag, or a priceless tag."""

    price: int | None
    source: PriceSource

    def __post_init__(self) -> None:
        if (self.price is not None) != self.source.has_price:
            raise ValueError(f"price {self.price!r} is inconsistent with source {self.source.value}")


MISSING_PRICE = PriceHit(None, PriceSource.MISSING)


@dataclass
class ListingRecord:
    id: str
    url: str
    title: str
    price: int | None = None
    price_source: PriceSource = PriceSource.MISSING
    country: str | None = None
    is_sponsored: bool = False

    def __post_init__(self) -> None:
        if not self.title:
            self.title = placeholder_title(self.id)
        PriceHit(self.price, self.price_source)

    @property
    def needs_detail(self) -> bool:
        return self.price_source is PriceSource.MISSING

    def apply_price(self, hit: PriceHit) -> None:
        self.price = hit.price
        self.price_source = hit.source

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "price": self.price,
            "priceSource": self.price_source.value,
            "country": self.country,
            "isSponsored": self.is_sponsored,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ListingRecord":
        source = data.get("priceSource", data.get("price_source")) or PriceSource.MISSING.value
        price = data.get("price")
        return cls(
            id=str(data["id"]),
            url=data["url"],
            title=data.get("title") or "",
            price=int(price) if price is not None else None,
            price_source=PriceSource(source),
            country=data.get("country"),
            is_sponsored=bool(data.get("isSponsored", data.get("is_sponsored", False))),
        )


def placeholder_title(listing_id: str) -> str:
    return f"Listing {listing_id}"


@dataclass
class PageResult:
    expected_count: int | None
    items: list[ListingRecord] = field(default_factory=list)


@dataclass
class ScrapeResult:
    expected_count: int | None
    page_size: int
    pages_scraped: int
    total_pages: int
    items: list[ListingRecord]
    warning: str | None = None
    from_cache: bool = False

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def partial(self) -> bool:
        return self.pages_scraped != self.total_pages

    def to_dict(self) -> dict[str, Any]:
        return {
            "expectedCount": self.expected_count,
            "count": self.count,
            "pageSize": self.page_size,
            "pagesScraped": self.pages_scraped,
            "totalPages": self.total_pages,
            "partial": self.partial,
            "warning": self.warning,
            "fromCache": self.from_cache,
            "items": [item.to_dict() for item in self.items],
        }
