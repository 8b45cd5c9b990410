import pytest
from playwright.sync_api import Error as PWError, TimeoutError as PWTimeout

from rental_monitor import utils
from rental_monitor.config import BrowserSettings, PaginationSettings
from rental_monitor.errors import TransientExtractionError
from rental_monitor.source import CARD_SELECTOR, PlaywrightSource


class StubPage:
    def __init__(self, goto_failures=0, marker=True):
        self.goto_failures = goto_failures
        self.marker = marker
        self.visited = []

    def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if len(self.visited) <= self.goto_failures:
            raise PWError("net::ERR_CONNECTION_RESET")

    def wait_for_selector(self, selector, timeout=None):
        assert selector == CARD_SELECTOR
        if not self.marker:
            raise PWTimeout(f"Timeout {timeout}ms exceeded")


class StubHandle:
    def __init__(self, log, name, error=None):
        self.log = log
        self.name = name
        self.error = error

    def close(self):
        self.log.append(self.name)
        if self.error is not None:
            raise self.error

    def stop(self):
        self.log.append(self.name)


@pytest.fixture
def waits(monkeypatch):
    calls = []
    monkeypatch.setattr(utils.time, "sleep", calls.append)
    return calls


def make_source(page=None):
    source = PlaywrightSource(BrowserSettings(), PaginationSettings())
    source._page = page
    return source


def test_navigation_error_becomes_transient_after_retry(waits):
    page = StubPage(goto_failures=5)
    source = make_source(page)

    with pytest.raises(TransientExtractionError, match="ERR_CONNECTION_RESET"):
        source.navigate("https://www.airbnb.com/s/New-York/homes")

    assert len(page.visited) == 2
    assert waits == [2]


def test_navigation_recovers_on_retry(waits):
    page = StubPage(goto_failures=1)
    make_source(page).navigate("https://www.airbnb.com/s/New-York/homes")
    assert len(page.visited) == 2


def test_content_marker_timeout_is_false():
    assert make_source(StubPage(marker=False)).wait_for_content_marker(100) is False
    assert make_source(StubPage(marker=True)).wait_for_content_marker(100) is True


def test_close_releases_every_handle_when_one_fails():
    log = []
    source = make_source(StubPage())
    source._context = StubHandle(log, "context", error=PWError("Target closed"))
    source._browser = StubHandle(log, "browser")
    source._playwright = StubHandle(log, "playwright")

    source.close()

    assert log == ["context", "browser", "playwright"]
    assert source._page is source._context is source._browser is source._playwright is None
    # second close is a no-op
    source.close()
    assert log == ["context", "browser", "playwright"]
