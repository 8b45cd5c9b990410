# rental_monitor/normalize.py
"""Raw card records → ``ListingCreate``.

Nothing here raises on missing data: absent fields become ``None`` and an
unreadable price becomes ``0``.
"""
import re
from typing import Any, Dict, List, Optional
from .schemas import ListingCreate
from .utils import logger

ROOM_ID_RE = re.compile(r"/rooms/(\d+)")
PRICE_RE = re.compile(r"\d[\d,]*")
RATING_RE = re.compile(r"\b(\d\.\d+)\b")
REVIEWS_RE = re.compile(r"\((\d[\d,]*)\)")
BEDROOMS_RE = re.compile(r"(\d+)\s*bedroom", re.I)
GUESTS_RE = re.compile(r"(\d+)\s*guest", re.I)


def parse_price(text: Optional[str]) -> int:
    """First amount in a display price, without currency or grouping: ``"$1,234 per night"`` → 1234."""
    if not text:
        return 0
    m = PRICE_RE.search(text.replace("\u00a0", " "))
    if not m:
        return 0
    try:
        return int(m.group(0).replace(",", ""))
    except ValueError:
        return 0


def listing_id_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    m = ROOM_ID_RE.search(url)
    if m:
        return m.group(1)
    digits = [part for part in url.split("?")[0].split("/") if part.isdigit()]
    return digits[0] if digits else None


def _int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(str(value).replace(",", ""))
    except ValueError:
        return None


def _float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _mine(pattern, texts, convert):
    for text in texts:
        m = pattern.search(text)
        if m:
            return convert(m.group(1))
    return None


def normalize_record(raw: Dict[str, Any], position: int) -> ListingCreate:
    url = raw.get("url") or ""
    listing_id = raw.get("id") or listing_id_from_url(url)
    if not listing_id:
        # position-based ids are not stable across runs
        listing_id = f"unknown-{position}"
        logger.warning("No stable id for record at position %d (%s), using %s", position, url or "no url", listing_id)

    subtitles: List[str] = [t for t in raw.get("subtitles") or [] if t]
    rating = _float(raw.get("rating"))
    review_count = _int(raw.get("review_count"))
    if subtitles and rating is None:
        rating = _mine(RATING_RE, subtitles, _float)
    if subtitles and review_count is None:
        review_count = _mine(REVIEWS_RE, subtitles, _int)
    bedrooms = _int(raw.get("bedrooms"))
    if bedrooms is None:
        bedrooms = _mine(BEDROOMS_RE, subtitles, _int)
    guests = _int(raw.get("guests"))
    if guests is None:
        guests = _mine(GUESTS_RE, subtitles, _int)

    price = raw.get("price")
    price = str(price) if price is not None else None
    return ListingCreate(
        id=str(listing_id),
        url=url,
        title=raw.get("title"),
        price=re.sub(r"\s+", " ", price).strip() if price else None,
        price_numeric=parse_price(price),
        bedrooms=bedrooms,
        bathrooms=str(raw["bathrooms"]) if raw.get("bathrooms") is not None else None,
        guests=guests,
        image_url=raw.get("image_url"),
        host_name=raw.get("host_name"),
        rating=rating,
        review_count=review_count,
    )


def normalize_batch(records: List[Dict[str, Any]]) -> List[ListingCreate]:
    return [normalize_record(raw, position) for position, raw in enumerate(records)]
