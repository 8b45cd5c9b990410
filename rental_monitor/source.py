# rental_monitor/source.py
"""Extraction source: drives a browser page and reads listing cards from it.

The pagination loop only talks to the ``ExtractionSource`` protocol, so any
object with these methods (a fake in tests, a different browser driver) can
stand in for ``PlaywrightSource``.
"""
import re
from typing import Any, Dict, List, Protocol
from urllib.parse import urljoin
from bs4 import BeautifulSoup
from playwright.sync_api import sync_playwright, Error as PWError, TimeoutError as PWTimeout
from .config import BrowserSettings, PaginationSettings
from .errors import TransientExtractionError
from .query import BASE_URL
from .utils import logger, retry

CARD_SELECTOR = '[data-testid="card-container"]'
ROOM_LINK_SELECTOR = 'a[href*="/rooms/"]'
TITLE_SELECTORS = ('[data-testid="listing-card-title"]', '[data-testid="listing-card-name"]', "h3")
PRICE_SELECTORS = ('[data-testid="price-availability"]', '[data-testid="price"]', 'span[aria-hidden="true"]')
SUBTITLE_SELECTOR = '[data-testid="listing-card-subtitle"]'
HOST_SELECTOR = '[data-testid="listing-card-host"]'

RawRecord = Dict[str, Any]


class ExtractionSource(Protocol):
    def navigate(self, url: str) -> None: ...
    def wait_for_content_marker(self, timeout_ms: int) -> bool: ...
    def scroll_to_extent(self) -> None: ...
    def scroll_by(self, delta_px: float) -> None: ...
    def measure_extent(self) -> int: ...
    def extract_raw_records(self) -> List[RawRecord]: ...
    def close(self) -> None: ...


def _first_text(card, selectors):
    for sel in selectors:
        el = card.select_one(sel)
        if el:
            text = el.get_text(" ", strip=True)
            if text:
                return re.sub(r"\s+", " ", text)
    return None


def parse_listing_cards(html: str, base_url: str = BASE_URL) -> List[RawRecord]:
    """Pull one raw record per listing card that links to a room page."""
    soup = BeautifulSoup(html, "lxml")
    records = []
    for card in soup.select(CARD_SELECTOR):
        link = card.select_one(ROOM_LINK_SELECTOR)
        if not link or not link.get("href"):
            continue
        img = card.select_one("img")
        records.append({
            "url": urljoin(base_url, link["href"]),
            "title": _first_text(card, TITLE_SELECTORS) or link.get_text(" ", strip=True) or None,
            "price": _first_text(card, PRICE_SELECTORS),
            "subtitles": [el.get_text(" ", strip=True) for el in card.select(SUBTITLE_SELECTOR)],
            "image_url": img.get("src") if img else None,
            "host_name": _first_text(card, (HOST_SELECTOR,)),
        })
    return records


class PlaywrightSource:
    """Chromium page owned by a single run; ``close`` releases every handle."""

    def __init__(self, browser: BrowserSettings, pagination: PaginationSettings):
        self._browser_settings = browser
        self._pagination = pagination
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    def init(self) -> "PlaywrightSource":
        launch_options = {
            "headless": self._browser_settings.headless,
            "args": ["--no-sandbox", "--disable-dev-shm-usage", "--disable-gpu"],
        }
        if self._browser_settings.proxy:
            launch_options["proxy"] = {"server": self._browser_settings.proxy}
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(**launch_options)
            self._context = self._browser.new_context(
                user_agent=self._browser_settings.user_agent,
                viewport={
                    "width": self._browser_settings.viewport_width,
                    "height": self._browser_settings.viewport_height,
                },
                locale="en-US",
            )
            self._page = self._context.new_page()
        except Exception:
            self.close()
            raise
        return self

    @retry(PWError, tries=2, delay=2)
    def _goto(self, url):
        self._page.goto(url, wait_until="domcontentloaded", timeout=self._pagination.navigation_timeout_ms)

    def navigate(self, url: str) -> None:
        try:
            self._goto(url)
        except PWError as e:
            raise TransientExtractionError(f"navigation to {url[:100]} failed: {e}") from e

    def wait_for_content_marker(self, timeout_ms: int) -> bool:
        try:
            self._page.wait_for_selector(CARD_SELECTOR, timeout=timeout_ms)
            return True
        except PWTimeout:
            return False

    def scroll_to_extent(self) -> None:
        self._page.evaluate("window.scrollTo(0, document.body.scrollHeight)")

    def scroll_by(self, delta_px: float) -> None:
        self._page.evaluate("(dy) => window.scrollBy(0, dy)", delta_px)

    def measure_extent(self) -> int:
        return int(self._page.evaluate("document.body.scrollHeight"))

    def extract_raw_records(self) -> List[RawRecord]:
        return parse_listing_cards(self._page.content(), BASE_URL)

    def close(self) -> None:
        for handle in (self._context, self._browser):
            if handle is None:
                continue
            try:
                handle.close()
            except PWError as e:
                logger.warning("Failed closing browser handle: %s", e)
        if self._playwright is not None:
            self._playwright.stop()
        self._page = self._context = self._browser = self._playwright = None


def open_source(browser: BrowserSettings, pagination: PaginationSettings) -> PlaywrightSource:
    return PlaywrightSource(browser, pagination).init()
