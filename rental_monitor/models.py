# rental_monitor/models.py
"""SQLAlchemy ORM models for persisted entities.

``Listing`` holds one row per rental ever observed; ``RunRecord`` is the
append-only history of pipeline executions.
"""
from sqlalchemy import Column, Integer, Text, Float, Boolean, DateTime, Index
from .db import Base
from .utils import utcnow

class Listing(Base):
    __tablename__ = "listings"
    id = Column(Text, primary_key=True)
    url = Column(Text, nullable=False)
    title = Column(Text)
    price = Column(Text)
    price_numeric = Column(Integer, nullable=False, default=0)
    bedrooms = Column(Integer)
    bathrooms = Column(Text)
    guests = Column(Integer)
    image_url = Column(Text)
    host_name = Column(Text)
    rating = Column(Float)
    review_count = Column(Integer)
    first_seen = Column(DateTime, nullable=False, default=utcnow)
    last_seen = Column(DateTime, nullable=False, default=utcnow)
    is_new = Column(Boolean, nullable=False, default=True)
    notified = Column(Boolean, nullable=False, default=False)

class RunRecord(Base):
    __tablename__ = "runs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, nullable=False, default=utcnow)
    listings_found = Column(Integer, nullable=False, default=0)
    new_listings = Column(Integer, nullable=False, default=0)
    success = Column(Boolean, nullable=False, default=False)
    error_message = Column(Text)

# fields an observation may overwrite; identity, timestamps and flags stay put
DISPLAY_FIELDS = (
    "url", "title", "price", "price_numeric", "bedrooms", "bathrooms", "guests",
    "image_url", "host_name", "rating", "review_count",
)

Index("idx_listings_flags", Listing.is_new, Listing.notified)
Index("idx_listings_last_seen", Listing.last_seen)
