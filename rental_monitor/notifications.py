# rental_monitor/notifications.py
"""New-listing alerts.

``NotificationDispatcher.dispatch`` never raises and never drops a batch: when
the email channel is missing, disabled or failing, the same sorted batch is
written to the log instead. The caller marks the batch notified whatever the
outcome, so a failed delivery is not retried.
"""
import smtplib
from email.message import EmailMessage
from html import escape
from typing import List, Optional, Protocol
from .config import EmailSettings, SearchCriteria
from .errors import NotificationError
from .schemas import DispatchOutcome, ListingOut
from .utils import logger

SEPARATOR = "=" * 50


class NotifierChannel(Protocol):
    def send(self, subject: str, text: str, html: str) -> bool: ...


class EmailChannel:
    def __init__(self, settings: EmailSettings, timeout: float = 30):
        self.settings = settings
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return self.settings.configured

    def send(self, subject: str, text: str, html: str) -> bool:
        if not self.configured:
            raise NotificationError("email credentials not configured")
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.user
        msg["To"] = self.settings.to or self.settings.user
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        try:
            with smtplib.SMTP(self.settings.host, self.settings.port, timeout=self.timeout) as smtp:
                smtp.starttls()
                smtp.login(self.settings.user, self.settings.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"SMTP delivery failed: {e}") from e
        logger.info("Notification email sent to %s", msg["To"])
        return True

    def send_test(self, criteria: SearchCriteria) -> bool:
        text = (
            "This is a test email from your rental monitor. If you received this, "
            "email notifications are working correctly!\n\n"
            f"Search criteria: {criteria.location}, {criteria.checkin} - {criteria.checkout}"
        )
        html = (
            "<h2>Test Email</h2><p>This is a test email from your rental monitor.</p>"
            f"<p>Search criteria: {escape(criteria.location)}, "
            f"{escape(criteria.checkin)} - {escape(criteria.checkout)}</p>"
        )
        return self.send("Rental Monitor Test Email", text, html)


def sort_by_price(listings: List[ListingOut]) -> List[ListingOut]:
    """Cheapest first; listings without a readable price (0) go last."""
    return sorted(listings, key=lambda l: (l.price_numeric <= 0, l.price_numeric))


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'s' if n != 1 else ''}"


def _criteria_lines(criteria: SearchCriteria) -> List[str]:
    return [
        f"Location: {criteria.location}",
        f"Check-in: {criteria.checkin}",
        f"Check-out: {criteria.checkout}",
        f"Guests: {criteria.guests}",
        f"Min Bedrooms: {criteria.min_bedrooms}",
        f"Max Price: ${criteria.max_price}",
        f"Room Type: {criteria.room_type}",
    ]


def _detail_lines(listing: ListingOut) -> List[str]:
    lines = []
    if listing.bedrooms:
        lines.append(_plural(listing.bedrooms, "bedroom"))
    if listing.guests:
        lines.append(_plural(listing.guests, "guest"))
    if listing.rating:
        reviews = f" ({listing.review_count} reviews)" if listing.review_count else ""
        lines.append(f"Rating: {listing.rating}{reviews}")
    if listing.host_name:
        lines.append(f"Host: {listing.host_name}")
    return lines


def render_text(listings: List[ListingOut], criteria: SearchCriteria) -> str:
    parts = [
        "NEW RENTAL LISTINGS FOUND!",
        "",
        f"{_plural(len(listings), 'new listing')} found in {criteria.location}",
        "",
        "SEARCH CRITERIA:",
    ]
    parts += [f"- {line}" for line in _criteria_lines(criteria)]
    parts += ["", "LISTINGS:", ""]
    for index, listing in enumerate(listings, 1):
        parts.append(f"{index}. {listing.title or 'Untitled listing'}")
        parts.append(f"   Price: {listing.price or 'Price not found'}")
        parts += [f"   {line}" for line in _detail_lines(listing)]
        parts.append(f"   Link: {listing.url}")
        parts.append("")
    parts.append("Act fast! New listings can be booked quickly.")
    return "\n".join(parts)


def render_html(listings: List[ListingOut], criteria: SearchCriteria) -> str:
    cards = []
    for listing in listings:
        url = escape(listing.url, quote=True)
        image = (
            f'<img src="{escape(listing.image_url, quote=True)}" alt="Listing image" '
            'style="width:150px;height:100px;object-fit:cover;border-radius:4px;margin-right:15px;">'
            if listing.image_url else ""
        )
        details = "".join(f'<p style="margin:5px 0;color:#666;">{escape(line)}</p>' for line in _detail_lines(listing))
        cards.append(
            '<div style="border:1px solid #ddd;border-radius:8px;margin:20px 0;padding:15px;">'
            f'<h3 style="margin-top:0;"><a href="{url}">{escape(listing.title or "Untitled listing")}</a></h3>'
            f'<div style="display:flex;align-items:center;">{image}<div>'
            f'<p style="margin:5px 0;font-size:18px;font-weight:bold;">{escape(listing.price or "Price not found")}</p>'
            f"{details}</div></div>"
            f'<p><a href="{url}">View Listing &rarr;</a></p>'
            "</div>"
        )
    criteria_items = "".join(f"<li>{escape(line)}</li>" for line in _criteria_lines(criteria))
    return (
        '<!DOCTYPE html><html><head><meta charset="utf-8"><title>New Rental Listings</title></head>'
        '<body style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:20px;">'
        "<h1>New Rental Listings Found!</h1>"
        f"<h3>Search Criteria:</h3><ul>{criteria_items}</ul>"
        f"<h2>Found {_plural(len(listings), 'new listing')}:</h2>"
        f"{''.join(cards)}"
        "<p>Act fast! New listings can be booked quickly.</p>"
        "</body></html>"
    )


def build_subject(listings: List[ListingOut], criteria: SearchCriteria) -> str:
    return f"{_plural(len(listings), 'New Listing')} Found in {criteria.location}! (Sorted by Price)"


def log_listings(listings: List[ListingOut]) -> None:
    logger.info(SEPARATOR)
    logger.info("FOUND %s", _plural(len(listings), "NEW LISTING"))
    for index, listing in enumerate(listings, 1):
        logger.info(
            "%d. id=%s title=%r price=%r price_numeric=%d url=%s",
            index, listing.id, listing.title, listing.price, listing.price_numeric, listing.url,
        )
        for line in _detail_lines(listing):
            logger.info("   %s", line)
    logger.info(SEPARATOR)


class NotificationDispatcher:
    def __init__(self, channel: Optional[NotifierChannel], criteria: SearchCriteria, enabled: bool = True):
        self.channel = channel
        self.criteria = criteria
        self.enabled = enabled

    def _channel_ready(self) -> bool:
        if self.channel is None or not self.enabled:
            return False
        return getattr(self.channel, "configured", True)

    def dispatch(self, listings: List[ListingOut]) -> DispatchOutcome:
        ordered = sort_by_price(listings)
        if not self._channel_ready():
            logger.info("Email notifications disabled. New listings found (sorted by lowest price):")
            log_listings(ordered)
            return DispatchOutcome.DISABLED
        subject = build_subject(ordered, self.criteria)
        try:
            delivered = self.channel.send(subject, render_text(ordered, self.criteria), render_html(ordered, self.criteria))
        except Exception as e:
            logger.error("Error sending notification email: %s", e)
            delivered = False
        if delivered:
            return DispatchOutcome.SENT
        log_listings(ordered)
        return DispatchOutcome.FAILED
