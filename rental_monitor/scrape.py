# rental_monitor/scrape.py
"""Paginated extraction over an ``ExtractionSource``.

Every way a page can run dry (no content marker, no cards, navigation failure,
page cap, shutdown) ends pagination normally with a ``stop_reason``; anything
else the source raises propagates to the run controller.
"""
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from .config import PaginationSettings, SearchCriteria
from .errors import TransientExtractionError
from .query import build_search_url
from .source import ExtractionSource, RawRecord
from .utils import logger

STOP_MAX_PAGES = "max_pages"
STOP_NO_MARKER = "no_content_marker"
STOP_EMPTY_PAGE = "empty_page"
STOP_NAVIGATION = "navigation_failed"
STOP_SHUTDOWN = "shutdown"


@dataclass
class PaginationResult:
    records: List[RawRecord] = field(default_factory=list)
    pages_scraped: int = 0
    stop_reason: Optional[str] = None
    # set only when pagination ended on the first page
    error: Optional[str] = None


def scroll_until_stable(
    source: ExtractionSource,
    settings: PaginationSettings,
    rng: random.Random = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Scroll until the page extent is unchanged ``stable_threshold`` times in a row.

    Returns the number of scroll iterations performed.
    """
    rng = rng or random.Random()
    stable_count = 0
    previous_extent = 0
    iterations = 0
    while stable_count < settings.stable_threshold:
        source.scroll_to_extent()
        sleep(rng.uniform(settings.settle_min, settings.settle_max))
        current_extent = source.measure_extent()
        if current_extent == previous_extent:
            stable_count += 1
        else:
            stable_count = 0
            previous_extent = current_extent
        if rng.random() < settings.reverse_scroll_probability:
            source.scroll_by(-rng.uniform(0, settings.reverse_scroll_max_px))
            sleep(settings.reverse_scroll_pause)
        iterations += 1
    logger.debug("Extent settled at %s after %d scrolls", previous_extent, iterations)
    return iterations


def paginate(
    source: ExtractionSource,
    criteria: SearchCriteria,
    settings: PaginationSettings,
    build_url: Callable[[SearchCriteria, int], str] = build_search_url,
    rng: random.Random = None,
    sleep: Callable[[float], None] = time.sleep,
    stop_event: threading.Event = None,
) -> PaginationResult:
    rng = rng or random.Random()
    result = PaginationResult()
    max_pages = criteria.max_pages
    page = 1
    while True:
        if page > max_pages:
            result.stop_reason = STOP_MAX_PAGES
            break
        if stop_event is not None and stop_event.is_set():
            result.stop_reason = STOP_SHUTDOWN
            break

        logger.info("Scraping page %d of %d", page, max_pages)
        url = build_url(criteria, page)
        try:
            source.navigate(url)
        except TransientExtractionError as e:
            logger.warning("Stopping pagination on page %d: %s", page, e)
            _stop(result, page, STOP_NAVIGATION, str(e))
            break

        if not source.wait_for_content_marker(settings.content_timeout_ms):
            logger.info("No more listings found on page %d", page)
            _stop(result, page, STOP_NO_MARKER,
                  f"listing content did not appear within {settings.content_timeout_ms} ms")
            break

        scroll_until_stable(source, settings, rng=rng, sleep=sleep)
        page_records = source.extract_raw_records()
        if not page_records:
            logger.info("No listings found on page %d, stopping pagination", page)
            _stop(result, page, STOP_EMPTY_PAGE, "page contained no listing cards")
            break

        result.records.extend(page_records)
        result.pages_scraped = page
        logger.info("Found %d listings on page %d (total: %d)", len(page_records), page, len(result.records))

        page += 1
        if page <= max_pages:
            delay = rng.uniform(settings.page_delay_min, settings.page_delay_max)
            logger.info("Waiting %.1fs before next page...", delay)
            sleep(delay)

    logger.info("Total listings found: %d across %d page(s), stop: %s",
                len(result.records), result.pages_scraped, result.stop_reason)
    return result


def _stop(result: PaginationResult, page: int, reason: str, detail: str):
    result.stop_reason = reason
    if page == 1:
        result.error = f"No listings found on page 1: {detail}"
