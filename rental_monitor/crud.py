# rental_monitor/crud.py
"""Listing store operations.

Upserts are a single ``INSERT ... ON CONFLICT DO UPDATE`` statement per listing
on SQLite and PostgreSQL. The conflict branch only refreshes display fields and
``last_seen``; ``first_seen``, ``is_new`` and ``notified`` are never touched by
an observation. ``reset_flags`` is the only code path that clears the flags.
"""
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import select, update, func, case
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from .errors import StoreWriteError
from .models import Listing, RunRecord, DISPLAY_FIELDS
from .schemas import StoreStats
from .utils import utcnow

INSERTED = "inserted"
UPDATED = "updated"

_DIALECT_INSERTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}

def _display_values(data: Dict[str, Any]) -> Dict[str, Any]:
    values = {k: data.get(k) for k in DISPLAY_FIELDS}
    values["price_numeric"] = values["price_numeric"] or 0
    return values

def _upsert_statement(db: Session, data: Dict[str, Any], now):
    table = Listing.__table__
    insert = _DIALECT_INSERTS.get(db.get_bind().dialect.name)
    if insert is None:
        return None
    values = _display_values(data)
    values.update(id=data["id"], first_seen=now, last_seen=now, is_new=True, notified=False)
    stmt = insert(table).values(**values)
    refreshed = {name: stmt.excluded[name] for name in DISPLAY_FIELDS}
    refreshed["last_seen"] = now
    return stmt.on_conflict_do_update(index_elements=["id"], set_=refreshed)

def upsert_listing(db: Session, data: Dict[str, Any], now=None) -> str:
    """Insert or refresh one listing; returns ``INSERTED`` or ``UPDATED``."""
    now = now or utcnow()
    listing_id = data["id"]
    try:
        existed = db.execute(select(Listing.id).where(Listing.id == listing_id)).first() is not None
        stmt = _upsert_statement(db, data, now)
        if stmt is not None:
            db.execute(stmt)
        elif existed:
            db.execute(
                update(Listing)
                .where(Listing.id == listing_id)
                .values(**_display_values(data), last_seen=now)
            )
        else:
            db.add(Listing(**_display_values(data), id=listing_id,
                           first_seen=now, last_seen=now, is_new=True, notified=False))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreWriteError(listing_id, str(e)) from e
    return UPDATED if existed else INSERTED

def get_listing(db: Session, listing_id: str) -> Optional[Listing]:
    return db.get(Listing, listing_id)

def query_new_unnotified(db: Session, ids: Iterable[str]) -> List[Listing]:
    ids = list(dict.fromkeys(ids))
    if not ids:
        return []
    stmt = (
        select(Listing)
        .where(Listing.is_new.is_(True), Listing.notified.is_(False), Listing.id.in_(ids))
        .order_by(Listing.first_seen.desc())
    )
    return list(db.scalars(stmt))

def mark_notified(db: Session, ids: Iterable[str]) -> int:
    ids = list(ids)
    if not ids:
        return 0
    result = db.execute(update(Listing).where(Listing.id.in_(ids)).values(notified=True))
    db.commit()
    return result.rowcount

def append_run_record(db: Session, listings_found: int, new_listings: int, success: bool,
                      error_message: Optional[str] = None) -> RunRecord:
    record = RunRecord(
        timestamp=utcnow(),
        listings_found=listings_found,
        new_listings=new_listings,
        success=success,
        error_message=error_message,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record

def get_stats(db: Session) -> StoreStats:
    row = db.execute(
        select(
            func.count(Listing.id),
            func.count(case((Listing.is_new.is_(True), 1))),
            func.count(case((Listing.notified.is_(True), 1))),
            func.max(Listing.last_seen),
        )
    ).one()
    return StoreStats(total=row[0], new=row[1], notified=row[2], last_seen=row[3])

def list_listings(db: Session, skip: int = 0, limit: int = 50, filters: Dict = None):
    q = db.query(Listing)
    if filters:
        if filters.get("min_price") is not None:
            q = q.filter(Listing.price_numeric >= filters["min_price"])
        if filters.get("max_price") is not None:
            q = q.filter(Listing.price_numeric <= filters["max_price"])
        if filters.get("new_only"):
            q = q.filter(Listing.is_new.is_(True), Listing.notified.is_(False))
    total = q.count()
    items = q.order_by(Listing.last_seen.desc()).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

def recent_listings(db: Session, limit: int = 10) -> List[Listing]:
    return list(db.scalars(select(Listing).order_by(Listing.last_seen.desc()).limit(limit)))

def list_runs(db: Session, limit: int = 20) -> List[RunRecord]:
    return list(db.scalars(select(RunRecord).order_by(RunRecord.id.desc()).limit(limit)))

def reset_flags(db: Session) -> int:
    """Administrative reset: every listing becomes unflagged again."""
    result = db.execute(update(Listing).values(is_new=False, notified=False))
    db.commit()
    return result.rowcount
