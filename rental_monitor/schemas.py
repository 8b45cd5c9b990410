# rental_monitor/schemas.py
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

class ListingCreate(BaseModel):
    id: str = Field(..., max_length=255)
    url: str
    title: Optional[str] = None
    price: Optional[str] = None
    price_numeric: int = Field(0, ge=0)
    bedrooms: Optional[int] = None
    bathrooms: Optional[str] = None
    guests: Optional[int] = None
    image_url: Optional[str] = None
    host_name: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None

class ListingOut(ListingCreate):
    first_seen: datetime
    last_seen: datetime
    is_new: bool
    notified: bool
    model_config = ConfigDict(from_attributes=True)

class RunRecordOut(BaseModel):
    id: int
    timestamp: datetime
    listings_found: int
    new_listings: int
    success: bool
    error_message: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)

class StoreStats(BaseModel):
    total: int = 0
    new: int = 0
    notified: int = 0
    last_seen: Optional[datetime] = None

class DispatchOutcome(str, Enum):
    SENT = "sent"
    DISABLED = "disabled"
    FAILED = "failed"

class RunStats(BaseModel):
    skipped: bool = False
    listings_found: int = 0
    new_listings: int = 0
    success: bool = False
    error_message: Optional[str] = None
    pages_scraped: int = 0
    stop_reason: Optional[str] = None
    dispatch: Optional[DispatchOutcome] = None
    duration_seconds: float = 0.0

class MonitorStatus(BaseModel):
    is_running: bool
    state: str
    last_run: Optional[str] = None
    search_url: str
    search_criteria: dict
    interval_minutes: int
    notifications_enabled: bool
    store: StoreStats
