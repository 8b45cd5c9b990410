import random
import threading

import pytest

from conftest import FakeSource, room
from rental_monitor.config import PaginationSettings, SearchCriteria
from rental_monitor.errors import TransientExtractionError
from rental_monitor.query import build_search_url
from rental_monitor import scrape


def criteria(max_pages=3):
    return SearchCriteria(max_pages=max_pages)


def test_records_keep_page_order_without_dedup(pagination, rng, no_sleep):
    source = FakeSource([[room(1), room(2)], [room(2), room(3)], [room(4)]])
    result = scrape.paginate(source, criteria(), pagination, rng=rng, sleep=no_sleep)

    ids = [r["url"].split("/rooms/")[1].split("?")[0] for r in result.records]
    assert ids == ["1", "2", "2", "3", "4"]
    assert result.pages_scraped == 3
    assert result.stop_reason == scrape.STOP_MAX_PAGES
    assert result.error is None


def test_never_exceeds_max_pages(pagination, rng, no_sleep):
    source = FakeSource([[room(i)] for i in range(10)])
    result = scrape.paginate(source, criteria(max_pages=2), pagination, rng=rng, sleep=no_sleep)
    assert len(source.urls) == 2
    assert result.pages_scraped == 2


def test_uses_query_builder_page_index(pagination, rng, no_sleep):
    source = FakeSource([[room(1)], [room(2)]])
    scrape.paginate(source, criteria(max_pages=2), pagination, rng=rng, sleep=no_sleep)
    assert source.urls == [build_search_url(criteria(2), 1), build_search_url(criteria(2), 2)]
    assert "section_offset" not in source.urls[0]
    assert "section_offset=1" in source.urls[1]


def test_stops_on_empty_page(pagination, rng, no_sleep):
    source = FakeSource([[room(1)], [], [room(3)]])
    result = scrape.paginate(source, criteria(), pagination, rng=rng, sleep=no_sleep)
    assert len(source.urls) == 2
    assert len(result.records) == 1
    assert result.stop_reason == scrape.STOP_EMPTY_PAGE
    assert result.error is None


def test_stops_when_content_marker_missing(pagination, rng, no_sleep):
    source = FakeSource([[room(1)], None, [room(3)]])
    result = scrape.paginate(source, criteria(), pagination, rng=rng, sleep=no_sleep)
    assert len(source.urls) == 2
    assert result.stop_reason == scrape.STOP_NO_MARKER
    assert result.error is None


def test_first_page_failure_reports_error(pagination, rng, no_sleep):
    source = FakeSource([None])
    result = scrape.paginate(source, criteria(), pagination, rng=rng, sleep=no_sleep)
    assert result.records == []
    assert result.stop_reason == scrape.STOP_NO_MARKER
    assert result.error.startswith("No listings found on page 1")


def test_navigation_failure_is_graceful_stop(pagination, rng, no_sleep):
    class Flaky(FakeSource):
        def navigate(self, url):
            if len(self.urls) == 1:
                raise TransientExtractionError("net::ERR_TIMED_OUT")
            super().navigate(url)

    source = Flaky([[room(1)], [room(2)]])
    result = scrape.paginate(source, criteria(), pagination, rng=rng, sleep=no_sleep)
    assert len(result.records) == 1
    assert result.stop_reason == scrape.STOP_NAVIGATION
    assert result.error is None


def test_stop_event_ends_pagination_between_pages(pagination, rng, no_sleep):
    stop = threading.Event()

    class StopAfterFirst(FakeSource):
        def extract_raw_records(self):
            stop.set()
            return super().extract_raw_records()

    source = StopAfterFirst([[room(1)], [room(2)]])
    result = scrape.paginate(source, criteria(), pagination, rng=rng, sleep=no_sleep, stop_event=stop)
    assert len(source.urls) == 1
    assert result.stop_reason == scrape.STOP_SHUTDOWN


def test_waits_between_pages_only(rng):
    settings = PaginationSettings(
        stable_threshold=1, settle_min=0.0, settle_max=0.0, reverse_scroll_probability=0.0,
        page_delay_min=2.0, page_delay_max=5.0,
    )
    sleeps = []
    source = FakeSource([[room(1)], [room(2)]], extents=(0,))
    scrape.paginate(source, criteria(max_pages=2), settings, rng=rng, sleep=sleeps.append)
    delays = [s for s in sleeps if s > 0]
    assert len(delays) == 1
    assert 2.0 <= delays[0] <= 5.0


class ExtentSource(FakeSource):
    def __init__(self, extents):
        super().__init__([[room(1)]], extents=extents)
        self.navigate("about:blank")


@pytest.mark.parametrize(
    "extents, expected",
    [
        ((1000, 1000, 1000), 3),
        ((1000, 2000, 3000, 3000, 3000), 5),
        ((1000, 1000, 2000, 2000, 2000), 5),
    ],
)
def test_scroll_converges_on_stable_count(extents, expected, no_sleep):
    settings = PaginationSettings(stable_threshold=2, settle_min=0.0, settle_max=0.0, reverse_scroll_probability=0.0)
    source = ExtentSource(extents)
    iterations = scrape.scroll_until_stable(source, settings, rng=random.Random(1), sleep=no_sleep)
    assert iterations == expected
    assert source.scrolls == expected


def test_reverse_scroll_does_not_affect_convergence():
    settings = PaginationSettings(stable_threshold=2, settle_min=0.0, settle_max=0.0, reverse_scroll_probability=1.0)
    source = ExtentSource((1000, 2000, 2000, 2000))
    sleeps = []
    iterations = scrape.scroll_until_stable(source, settings, rng=random.Random(1), sleep=sleeps.append)
    assert iterations == 4
    assert source.reverse_scrolls == 4
    assert sleeps.count(settings.reverse_scroll_pause) == 4
