# rental_monitor/services.py
"""Reconcile a run's batch with the store.

The batch is upserted listing by listing; a write failure only costs that
listing. The new-for-this-run set is then read back from the store: every
``is_new`` and not yet ``notified`` row whose id is in the batch. A listing
whose alert was never marked keeps coming back here on every run it reappears
in, which is the at-least-once delivery the monitor promises.
"""
from dataclasses import dataclass, field
from typing import List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from . import crud
from .errors import FatalRunError, StoreWriteError
from .schemas import ListingCreate, ListingOut
from .utils import logger, utcnow

@dataclass
class ReconcileResult:
    batch_ids: List[str] = field(default_factory=list)
    inserted: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    new_for_run: List[ListingOut] = field(default_factory=list)

def ingest_listing(db: Session, listing: ListingCreate, now=None) -> str:
    outcome = crud.upsert_listing(db, listing.model_dump(), now=now)
    logger.debug("Ingested listing %s (%s)", listing.id, outcome)
    return outcome

def reconcile(db: Session, listings: List[ListingCreate], now=None) -> ReconcileResult:
    now = now or utcnow()
    result = ReconcileResult(batch_ids=list(dict.fromkeys(l.id for l in listings)))
    for listing in listings:
        try:
            outcome = ingest_listing(db, listing, now=now)
        except StoreWriteError as e:
            logger.error("Error saving listing %s: %s", listing.id, e)
            result.failed.append(listing.id)
            continue
        (result.inserted if outcome == crud.INSERTED else result.updated).append(listing.id)

    try:
        rows = crud.query_new_unnotified(db, result.batch_ids)
    except SQLAlchemyError as e:
        raise FatalRunError(f"could not read unnotified listings: {e}") from e
    result.new_for_run = [ListingOut.model_validate(row) for row in rows]
    logger.info(
        "Reconciled %d listings: %d inserted, %d updated, %d failed, %d to notify",
        len(listings), len(result.inserted), len(result.updated), len(result.failed), len(result.new_for_run),
    )
    return result

def mark_batch_notified(db: Session, listings: List[ListingOut]) -> int:
    ids = [l.id for l in listings]
    try:
        return crud.mark_notified(db, ids)
    except SQLAlchemyError as e:
        db.rollback()
        raise FatalRunError(f"could not mark {len(ids)} listings notified: {e}") from e
