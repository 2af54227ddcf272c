"""Exceptions raised by the scraping pipeline."""

from typing import Any


class ScrapeError(Exception):
    """Base error; ``meta`` carries diagnostic context for API callers."""

    def __init__(self, message: str, meta: dict[str, Any] | None = None):
        super().__init__(message)
        self.meta = meta


class InvalidRequestError(ScrapeError):
    """The batch request cannot be served (bad URL, bad bounds)."""


class FetchError(ScrapeError):
    """A page could not be loaded."""


class FetchTimeout(FetchError):
    """A page load or selector wait exceeded its deadline."""


class CountMismatchError(ScrapeError):
    """All needed pages were walked but the item count disagrees with the site."""
