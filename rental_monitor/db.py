# rental_monitor/db.py
"""Database engine and session utilities.

Centralized SQLAlchemy engine creation, table bootstrap and the session
dependency helper for FastAPI. SQLite is the default store; any URL SQLAlchemy
understands can be supplied through ``DATABASE_URL``.
"""
import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import DEFAULT_DATABASE_URL, normalize_database_url

Base = declarative_base()


def make_engine(url: str):
    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        # the scheduler runs jobs off the main thread
        return create_engine(url, connect_args={"check_same_thread": False})
    # tuned pool settings for a networked DB
    return create_engine(
        url,
        pool_size=int(os.getenv("DB_POOL_SIZE", 5)),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", 10)),
        pool_pre_ping=True
    )


def init_db(bind):
    """Create the data directory for file-backed SQLite and any missing tables."""
    import rental_monitor.models  # noqa: F401 ensure models are imported so tables are known

    url = bind.url
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(bind=bind)


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL))
engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
