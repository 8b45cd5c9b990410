# rental_monitor/config.py
"""Process configuration.

Everything is read from the environment (a ``.env`` file is honoured) once, by
``load_settings``, and frozen afterwards. The search filter defaults describe an
entire-home search across New York City.
"""
import os
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./data/listings.db"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class MapBounds(Frozen):
    ne_lat: float = 40.9176
    ne_lng: float = -73.7004
    sw_lat: float = 40.4774
    sw_lng: float = -74.2591
    zoom: float = 10.5


class SearchCriteria(Frozen):
    location: str = "New York, NY"
    place_id: str = "ChIJOwg_06VPwokRYv534QaPC8g"
    checkin: str = "2025-08-15"
    checkout: str = "2025-12-20"
    adults: int = 2
    guests: int = 2
    min_bedrooms: int = 2
    max_price: int = 4879
    room_type: str = "Entire home/apt"
    map_bounds: MapBounds = MapBounds()
    max_pages: int = 15


class PaginationSettings(Frozen):
    stable_threshold: int = 5
    settle_min: float = 2.0
    settle_max: float = 3.0
    reverse_scroll_probability: float = 0.3
    reverse_scroll_max_px: int = 200
    reverse_scroll_pause: float = 0.5
    page_delay_min: float = 2.0
    page_delay_max: float = 5.0
    content_timeout_ms: int = 30000
    navigation_timeout_ms: int = 60000


class BrowserSettings(Frozen):
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1920
    viewport_height: int = 1080
    proxy: Optional[str] = None


class EmailSettings(Frozen):
    host: str = "smtp.gmail.com"
    port: int = 587
    user: Optional[str] = None
    password: Optional[str] = None
    to: Optional[str] = None

    @property
    def configured(self) -> bool:
        return bool(self.user and self.password)


class MonitorSettings(Frozen):
    interval_minutes: int = 15
    enable_notifications: bool = True
    debug: bool = False


class Settings(Frozen):
    database_url: str = DEFAULT_DATABASE_URL
    search: SearchCriteria = SearchCriteria()
    pagination: PaginationSettings = PaginationSettings()
    browser: BrowserSettings = BrowserSettings()
    email: EmailSettings = EmailSettings()
    monitor: MonitorSettings = MonitorSettings()


def _env_int(name, default):
    value = os.getenv(name)
    try:
        return int(value) if value else default
    except ValueError:
        return default


def _env_float(name, default):
    value = os.getenv(name)
    try:
        return float(value) if value else default
    except ValueError:
        return default


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


def normalize_database_url(url: str) -> str:
    # SQLAlchemy 2.x doesn't accept 'postgres://'
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


def load_settings() -> Settings:
    search_defaults = SearchCriteria()
    pagination_defaults = PaginationSettings()
    search = SearchCriteria(
        location=os.getenv("SEARCH_LOCATION", search_defaults.location),
        place_id=os.getenv("SEARCH_PLACE_ID", search_defaults.place_id),
        checkin=os.getenv("SEARCH_CHECKIN", search_defaults.checkin),
        checkout=os.getenv("SEARCH_CHECKOUT", search_defaults.checkout),
        adults=_env_int("SEARCH_ADULTS", search_defaults.adults),
        guests=_env_int("SEARCH_GUESTS", search_defaults.guests),
        min_bedrooms=_env_int("SEARCH_MIN_BEDROOMS", search_defaults.min_bedrooms),
        max_price=_env_int("SEARCH_MAX_PRICE", search_defaults.max_price),
        room_type=os.getenv("SEARCH_ROOM_TYPE", search_defaults.room_type),
        max_pages=_env_int("MAX_PAGES", search_defaults.max_pages),
    )
    pagination = PaginationSettings(
        stable_threshold=_env_int("STABLE_THRESHOLD", pagination_defaults.stable_threshold),
        settle_min=_env_float("SETTLE_MIN", pagination_defaults.settle_min),
        settle_max=_env_float("SETTLE_MAX", pagination_defaults.settle_max),
        page_delay_min=_env_float("PAGE_DELAY_MIN", pagination_defaults.page_delay_min),
        page_delay_max=_env_float("PAGE_DELAY_MAX", pagination_defaults.page_delay_max),
        content_timeout_ms=_env_int("CONTENT_TIMEOUT_MS", pagination_defaults.content_timeout_ms),
        navigation_timeout_ms=_env_int("NAVIGATION_TIMEOUT_MS", pagination_defaults.navigation_timeout_ms),
    )
    return Settings(
        database_url=normalize_database_url(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)),
        search=search,
        pagination=pagination,
        browser=BrowserSettings(
            headless=_env_flag("HEADLESS", True),
            proxy=os.getenv("PROXY_URL") or None,
        ),
        email=EmailSettings(
            host=os.getenv("EMAIL_HOST", "smtp.gmail.com"),
            port=_env_int("EMAIL_PORT", 587),
            user=os.getenv("EMAIL_USER") or None,
            password=os.getenv("EMAIL_PASS") or None,
            to=os.getenv("EMAIL_TO") or None,
        ),
        monitor=MonitorSettings(
            interval_minutes=_env_int("MONITOR_INTERVAL_MINUTES", 15),
            enable_notifications=_env_flag("ENABLE_NOTIFICATIONS", True),
            debug=_env_flag("DEBUG", False),
        ),
    )
