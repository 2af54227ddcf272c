"""Minimal async DOM surface the scanner and extractors depend on.

The Playwright adapters in ``core.browser`` implement these protocols; tests
substitute in-memory fakes.
"""

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Protocol


class Node(Protocol):
    async def attribute(self, selector: str, name: str) -> str | None:
        """Attribute ``name`` of the first element matching ``selector``."""
        ...

    async def text_of(self, selector: str) -> str | None:
        """Text content of the first element matching ``selector``."""
        ...

    async def texts_of(self, selector: str) -> list[str]:
        """Text content of every element matching ``selector``."""
        ...

    async def inner_text(self) -> str:
        """Rendered text of the node itself."""
        ...


@dataclass
class Anchor:
    href: str | None
    in_main: bool
    card: Node


class Document(Node, Protocol):
    url: str

    async def wait_for(self, selector: str, timeout_ms: int) -> bool:
        """True once ``selector`` matches, False if it never does within the timeout."""
        ...

    async def anchors(self, selector: str) -> list[Anchor]:
        ...


class PageFetcher(Protocol):
    def fetch(self, url: str, timeout_ms: int) -> AbstractAsyncContextManager[Document]:
        """Open ``url``; raises ``FetchTimeout`` or ``FetchError`` on failure."""
        ...
