import pytest
from urllib.parse import parse_qs, urlparse

from rental_monitor import utils
from rental_monitor.config import SearchCriteria, load_settings
from rental_monitor.query import build_search_url


def test_load_settings_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db/rentals")
    monkeypatch.setenv("MAX_PAGES", "4")
    monkeypatch.setenv("HEADLESS", "false")
    monkeypatch.setenv("ENABLE_NOTIFICATIONS", "false")
    monkeypatch.setenv("MONITOR_INTERVAL_MINUTES", "not-a-number")
    monkeypatch.setenv("EMAIL_USER", "me@example.com")
    monkeypatch.delenv("EMAIL_PASS", raising=False)

    settings = load_settings()

    assert settings.database_url == "postgresql+psycopg2://u:p@db/rentals"
    assert settings.search.max_pages == 4
    assert settings.browser.headless is False
    assert settings.monitor.enable_notifications is False
    assert settings.monitor.interval_minutes == 15
    assert settings.email.configured is False


def test_search_criteria_is_frozen():
    criteria = SearchCriteria()
    with pytest.raises(Exception):
        criteria.max_pages = 99


def test_build_search_url():
    criteria = SearchCriteria(location="Brooklyn, NY", max_price=300, min_bedrooms=1)
    first = urlparse(build_search_url(criteria, 1))
    third = parse_qs(urlparse(build_search_url(criteria, 3)).query)

    assert first.path == "/s/Brooklyn%2C%20NY/homes"
    query = parse_qs(first.query)
    assert query["price_max"] == ["300"]
    assert query["min_bedrooms"] == ["1"]
    assert query["selected_filter_order[]"] == ["room_types:Entire home/apt", "min_bedrooms:1", "price_max:300"]
    assert "section_offset" not in query
    assert third["section_offset"] == ["2"]


def test_retry_gives_up_after_tries():
    calls, waits = [], []

    @utils.retry(ValueError, tries=3, delay=1, backoff=2, sleep=waits.append)
    def flaky():
        calls.append(1)
        raise ValueError("nope")

    with pytest.raises(ValueError):
        flaky()
    assert len(calls) == 3
    assert waits == [1, 2]


def test_retry_returns_first_success():
    attempts = iter([ValueError("once"), "ok"])

    @utils.retry(ValueError, tries=3, delay=0, sleep=lambda s: None)
    def sometimes():
        value = next(attempts)
        if isinstance(value, Exception):
            raise value
        return value

    assert sometimes() == "ok"
