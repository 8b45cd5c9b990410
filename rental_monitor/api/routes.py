# rental_monitor/api/routes.py
from functools import lru_cache
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List
from .. import crud, schemas
from ..config import load_settings
from ..db import get_db
from ..monitor import RunController

router = APIRouter()

@lru_cache(maxsize=1)
def get_controller() -> RunController:
    return RunController(load_settings())

@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/listings", response_model=List[schemas.ListingOut])
def listings(
    skip: int = 0,
    limit: int = 20,
    min_price: int | None = Query(None),
    max_price: int | None = Query(None),
    new_only: bool = Query(False),
    db: Session = Depends(get_db)
):
    filters = {"min_price": min_price, "max_price": max_price, "new_only": new_only}
    res = crud.list_listings(db, skip=skip, limit=limit, filters=filters)
    return res["items"]


@router.get("/listings/{listing_id}", response_model=schemas.ListingOut)
def get_listing(listing_id: str, db: Session = Depends(get_db)):
    obj = crud.get_listing(db, listing_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Listing not found")
    return obj


@router.get("/runs", response_model=List[schemas.RunRecordOut])
def runs(limit: int = 20, db: Session = Depends(get_db)):
    return crud.list_runs(db, limit=limit)


@router.get("/status", response_model=schemas.MonitorStatus)
def status(controller: RunController = Depends(get_controller)):
    return controller.status()


@router.post("/run", response_model=schemas.RunStats)
def trigger_run(controller: RunController = Depends(get_controller)):
    # errors inside the run are already folded into the returned stats
    return controller.start()
