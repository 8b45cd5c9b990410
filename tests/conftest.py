# tests/conftest.py
import random

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rental_monitor.config import PaginationSettings, SearchCriteria, Settings
from rental_monitor.db import Base, init_db


class FakeSource:
    """Scripted extraction source; each navigate() consumes the next scripted page.

    A scripted page is a list of raw records, or ``None`` for a page whose content
    marker never shows up. ``extents`` is the sequence measure_extent() returns
    for every page (the last value repeats).
    """

    def __init__(self, pages, extents=(1000, 2000, 2000)):
        self.pages = list(pages)
        self.extents = list(extents)
        self.urls = []
        self.current = None
        self.scrolls = 0
        self.reverse_scrolls = 0
        self.closed = False
        self._extent_iter = None

    def navigate(self, url):
        self.urls.append(url)
        self.current = self.pages.pop(0) if self.pages else []
        self._extent_iter = iter(self.extents)
        self._last_extent = 0

    def wait_for_content_marker(self, timeout_ms):
        return self.current is not None

    def scroll_to_extent(self):
        self.scrolls += 1

    def scroll_by(self, delta_px):
        self.reverse_scrolls += 1

    def measure_extent(self):
        self._last_extent = next(self._extent_iter, self._last_extent)
        return self._last_extent

    def extract_raw_records(self):
        return list(self.current or [])

    def close(self):
        self.closed = True


class FakeChannel:
    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.sent = []
        self.configured = True

    def send(self, subject, text, html):
        self.sent.append((subject, text, html))
        if self.error is not None:
            raise self.error
        return self.result


def room(listing_id, price="$100 per night", **extra):
    record = {
        "url": f"https://www.airbnb.com/rooms/{listing_id}?check_in=2025-08-15",
        "title": f"Listing {listing_id}",
        "price": price,
    }
    record.update(extra)
    return record


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    init_db(eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def pagination():
    return PaginationSettings(
        stable_threshold=2, settle_min=0.0, settle_max=0.0,
        reverse_scroll_probability=0.0, page_delay_min=0.0, page_delay_max=0.0,
    )


@pytest.fixture
def settings(pagination):
    return Settings(search=SearchCriteria(max_pages=3), pagination=pagination)


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture
def no_sleep():
    calls = []
    return calls.append
