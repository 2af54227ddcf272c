import asyncio
import logging
import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from playwright.async_api import (
    Browser,
    ElementHandle,
    Error as PlaywrightError,
    Page,
    Playwright,
    Route,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from config import Settings, settings as default_settings
from core.dom import Anchor
from core.errors import FetchError, FetchTimeout

log = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media"})
CONSENT_SELECTORS = (
    "#onetrust-accept-btn-handler",
    '[data-testid="uc-accept-all-button"]',
    'button:has-text("Tout accepter")',
    'button:has-text("Accepter")',
    "button:has-text(\"J'accepte\")",
    'button:has-text("Accept")',
)
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]
VIEWPORT = {"width": 1920, "height": 1080}

CARD_SCRIPT = "a => a.closest('article') || a.closest('li') || a.closest('div') || a"
IN_MAIN_SCRIPT = "a => !!a.closest('main')"
TEXTS_SCRIPT = "nodes => nodes.map(n => n.textContent || '')"


class _Scope:
    def __init__(self, root: Page | ElementHandle):
        self._root = root

    async def attribute(self, selector: str, name: str) -> str | None:
        el = await self._root.query_selector(selector)
        return await el.get_attribute(name) if el else None

    async def text_of(self, selector: str) -> str | None:
        el = await self._root.query_selector(selector)
        return await el.text_content() if el else None

    async def texts_of(self, selector: str) -> list[str]:
        return await self._root.eval_on_selector_all(selector, TEXTS_SCRIPT)


class PlaywrightNode(_Scope):
    def __init__(self, handle: ElementHandle):
        super().__init__(handle)
        self._handle = handle

    async def inner_text(self) -> str:
        return await self._handle.evaluate("n => n.innerText || ''")


class PlaywrightDocument(_Scope):
    def __init__(self, page: Page):
        super().__init__(page)
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def inner_text(self) -> str:
        try:
            return await self._page.evaluate("() => document.body ? document.body.innerText : ''")
        except PlaywrightError as e:
            log.debug(f"Could not read body text of {self.url}: {e}")
            return ""

    async def wait_for(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            raise FetchError(f"Page {self.url} broke while waiting for {selector}: {e}") from e

    async def anchors(self, selector: str) -> list[Anchor]:
        anchors = []
        try:
            for link in await self._page.query_selector_all(selector):
                href = await link.get_attribute("href")
                in_main = bool(await link.evaluate(IN_MAIN_SCRIPT))
                card = (await link.evaluate_handle(CARD_SCRIPT)).as_element() or link
                anchors.append(Anchor(href=href, in_main=in_main, card=PlaywrightNode(card)))
        except PlaywrightError as e:
            raise FetchError(f"Page {self.url} broke while collecting links: {e}") from e
        return anchors


async def dismiss_consent(page: Page) -> bool:
    """Click the first consent button found. Never raises."""
    for selector in CONSENT_SELECTORS:
        try:
            button = await page.query_selector(selector)
            if not button:
                continue
            await button.click(timeout=2000)
            await page.wait_for_timeout(300)
            return True
        except PlaywrightError as e:
            log.debug(f"Consent click on {selector} failed: {e}")
    return False


class BrowserPool:
    """One lazily launched Chromium shared by all fetches; one context per fetch."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or default_settings
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        if self._browser:
            return self._browser

        async with self._lock:
            if self._browser:
                return self._browser

            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.settings.headless,
                args=LAUNCH_ARGS,
            )
            log.info("Chromium launched")
            return self._browser

    async def _block_heavy(self, route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    @asynccontextmanager
    async def fetch(self, url: str, timeout_ms: int) -> AsyncIterator[PlaywrightDocument]:
        browser = await self._ensure_browser()
        context = await browser.new_context(
            locale=self.settings.locale,
            user_agent=random.choice(self.settings.user_agents),
            viewport=VIEWPORT,
            extra_http_headers={"Accept-Language": self.settings.accept_language},
        )
        try:
            page = await context.new_page()
            if self.settings.block_resources:
                await page.route("**/*", self._block_heavy)

            try:
                await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            except PlaywrightTimeoutError as e:
                raise FetchTimeout(f"Timed out loading {url} after {timeout_ms}ms") from e
            except PlaywrightError as e:
                raise FetchError(f"Failed to load {url}: {e}") from e

            await dismiss_consent(page)
            yield PlaywrightDocument(page)
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                log.debug(f"Context close failed: {e}")

    async def close(self) -> None:
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        log.info("Browser closed")
