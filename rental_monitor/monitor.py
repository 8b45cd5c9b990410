# rental_monitor/monitor.py
"""Run controller: one pipeline execution at a time.

``start`` is safe to call from the scheduler thread, the HTTP API and the CLI
at once; a call that finds a run in flight returns a skipped ``RunStats``
straight away and leaves no trace in the run history.
"""
import random
import threading
import time
from contextlib import closing
from enum import Enum
from typing import Callable, Optional
from sqlalchemy.exc import SQLAlchemyError
from . import crud
from .config import Settings
from .db import SessionLocal
from .normalize import normalize_batch
from .notifications import EmailChannel, NotificationDispatcher
from .query import build_search_url
from .schemas import ListingOut, MonitorStatus, RunStats
from .scrape import paginate
from .services import mark_batch_notified, reconcile
from .source import ExtractionSource, open_source
from .utils import logger


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def default_source_factory(settings: Settings) -> ExtractionSource:
    return open_source(settings.browser, settings.pagination)


class RunController:
    def __init__(
        self,
        settings: Settings,
        session_factory=SessionLocal,
        source_factory: Callable[[Settings], ExtractionSource] = default_source_factory,
        dispatcher: Optional[NotificationDispatcher] = None,
        rng: random.Random = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.source_factory = source_factory
        self.dispatcher = dispatcher or NotificationDispatcher(
            EmailChannel(settings.email), settings.search, enabled=settings.monitor.enable_notifications
        )
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.state = RunState.IDLE
        self.last_state: Optional[RunState] = None
        self._guard = threading.Lock()
        self._stop = threading.Event()

    @property
    def is_running(self) -> bool:
        return self.state is RunState.RUNNING

    def start(self) -> RunStats:
        if self._stop.is_set():
            logger.info("Monitor is shutting down, not starting a new run")
            return RunStats(skipped=True)
        if not self._guard.acquire(blocking=False):
            logger.info("Monitor is already running, skipping this cycle...")
            return RunStats(skipped=True)
        self.state = RunState.RUNNING
        try:
            stats = self._run()
            self.last_state = RunState.SUCCEEDED if stats.success else RunState.FAILED
            return stats
        finally:
            self.state = RunState.IDLE
            self._guard.release()

    def _run(self) -> RunStats:
        started = time.monotonic()
        logger.info("Starting rental monitor run")
        stats = RunStats()
        db = self.session_factory()
        try:
            try:
                self._pipeline(db, stats)
            except Exception as e:
                logger.exception("Error during monitoring run: %s", e)
                stats.success = False
                stats.error_message = str(e) or e.__class__.__name__
            try:
                crud.append_run_record(
                    db, stats.listings_found, stats.new_listings, stats.success, stats.error_message
                )
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Could not record run history: %s", e)
        finally:
            db.close()
        stats.duration_seconds = round(time.monotonic() - started, 2)
        logger.info("Monitor run completed in %.2fs (success=%s)", stats.duration_seconds, stats.success)
        return stats

    def _pipeline(self, db, stats: RunStats):
        with closing(self.source_factory(self.settings)) as source:
            result = paginate(
                source, self.settings.search, self.settings.pagination,
                rng=self.rng, sleep=self.sleep, stop_event=self._stop,
            )
        stats.pages_scraped = result.pages_scraped
        stats.stop_reason = result.stop_reason
        stats.listings_found = len(result.records)
        if not result.records:
            logger.warning("No listings found. This might indicate a problem with the scraper.")
            stats.error_message = result.error or "No listings found"
            return

        reconciled = reconcile(db, normalize_batch(result.records))
        stats.new_listings = len(reconciled.new_for_run)
        if reconciled.new_for_run:
            logger.info("Found %d new listing(s)!", stats.new_listings)
            stats.dispatch = self.dispatcher.dispatch(reconciled.new_for_run)
            # marked even when only the log fallback ran
            mark_batch_notified(db, reconciled.new_for_run)
        else:
            logger.info("No new listings found this time.")
        stats.success = True

        store = crud.get_stats(db)
        logger.info("Database stats: %d total listings, %d new, %d notified", store.total, store.new, store.notified)

    def request_stop(self) -> None:
        """Ask an in-flight run to stop at the next page boundary and refuse new runs."""
        self._stop.set()

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Refuse new runs and wait for the in-flight one; returns False on timeout."""
        logger.info("Shutting down rental monitor...")
        self.request_stop()
        acquired = self._guard.acquire(timeout=-1 if timeout is None else timeout)
        if acquired:
            self._guard.release()
        else:
            logger.warning("In-flight run did not finish within %ss", timeout)
        logger.info("Monitor shutdown complete")
        return acquired

    def status(self) -> MonitorStatus:
        with closing(self.session_factory()) as db:
            store = crud.get_stats(db)
        return MonitorStatus(
            is_running=self.is_running,
            state=self.state.value,
            last_run=self.last_state.value if self.last_state else None,
            search_url=build_search_url(self.settings.search),
            search_criteria=self.settings.search.model_dump(),
            interval_minutes=self.settings.monitor.interval_minutes,
            notifications_enabled=self.settings.monitor.enable_notifications,
            store=store,
        )

    def recent_listings(self, limit: int = 10):
        with closing(self.session_factory()) as db:
            return [ListingOut.model_validate(row) for row in crud.recent_listings(db, limit)]

    def reset_flags(self) -> int:
        with closing(self.session_factory()) as db:
            count = crud.reset_flags(db)
        logger.info("Reset new/notified flags on %d listings", count)
        return count

    def test_components(self) -> dict:
        """Smoke-test the source, the store and the email channel independently."""
        results = {}
        logger.info("1. Testing scraper...")
        try:
            with closing(self.source_factory(self.settings)):
                pass
            logger.info("   Scraper initialized successfully. Search URL: %s", build_search_url(self.settings.search))
            results["scraper"] = True
        except Exception as e:
            logger.error("   Scraper test failed: %s", e)
            results["scraper"] = False

        logger.info("2. Testing database...")
        try:
            with closing(self.session_factory()) as db:
                store = crud.get_stats(db)
            logger.info("   Database connected. Stats: %d total listings", store.total)
            results["database"] = True
        except SQLAlchemyError as e:
            logger.error("   Database test failed: %s", e)
            results["database"] = False

        logger.info("3. Testing notifications...")
        channel = self.dispatcher.channel
        if channel is None or not getattr(channel, "configured", True) or not hasattr(channel, "send_test"):
            logger.info("   Email not configured. Cannot send test email.")
            results["notifications"] = False
        else:
            try:
                results["notifications"] = bool(channel.send_test(self.settings.search))
                logger.info("   Notification test completed (check your email)")
            except Exception as e:
                logger.error("   Notification test failed: %s", e)
                results["notifications"] = False
        return results
