# rental_monitor/scheduler.py
"""Interval trigger that drives the run controller in a background thread."""
from apscheduler.schedulers.background import BackgroundScheduler
from .monitor import RunController
from .utils import logger

def build_scheduler(controller: RunController, interval_minutes: int) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    # overlapping triggers are dropped, never queued
    scheduler.add_job(
        controller.start, 'interval', minutes=interval_minutes,
        id="monitor-run", max_instances=1, coalesce=True,
    )
    return scheduler

def start_scheduler(controller: RunController, interval_minutes: int) -> BackgroundScheduler:
    scheduler = build_scheduler(controller, interval_minutes)
    scheduler.start()
    logger.info("Scheduler started, running every %d minutes", interval_minutes)
    return scheduler

def stop_scheduler(scheduler: BackgroundScheduler, controller: RunController) -> None:
    if scheduler.running:
        # wait=True lets an in-flight run reach a terminal state
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")
    controller.shutdown()
