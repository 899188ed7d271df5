"""
Periodic cleanup sweep using APScheduler.
Enabled only when CLEANUP_INTERVAL_HOURS is set.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.engine import Engine
from sqlmodel import Session

from lostfound.services.cleanup import DEFAULT_RETENTION, SweepResult, sweep

logger = logging.getLogger(__name__)

JOB_ID = "cleanup_received_items"


class CleanupScheduler:
    """
    Background scheduler running the cleanup sweep on a fixed interval.
    Each run opens its own session on the shared engine.
    """

    def __init__(self, engine: Engine, interval: timedelta, retention: timedelta = DEFAULT_RETENTION):
        self.engine = engine
        self.interval = interval
        self.retention = retention
        self.scheduler = BackgroundScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # one catch-up run after downtime is enough
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
        )
        self.is_running = False

    def start(self):
        if self.is_running:
            return

        self.scheduler.add_job(
            func=self.run_sweep,
            trigger=IntervalTrigger(seconds=int(self.interval.total_seconds()), timezone=timezone.utc),
            id=JOB_ID,
            name="Clean up received items",
            replace_existing=True,
        )
        self.scheduler.start()
        self.is_running = True
        logger.info("Cleanup scheduler started, sweeping every %s", self.interval)

    def run_sweep(self) -> Optional[SweepResult]:
        started = datetime.now(timezone.utc)
        try:
            with Session(self.engine) as session:
                result = sweep(session, retention=self.retention, now=started)
        except Exception:
            logger.exception("Scheduled cleanup sweep failed")
            return None

        duration = (datetime.now(timezone.utc) - started).total_seconds()
        logger.info("Scheduled cleanup finished in %.2f seconds", duration)
        return result

    def shutdown(self):
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Cleanup scheduler stopped")


def retention_from_env() -> timedelta:
    days = os.getenv("CLEANUP_RETENTION_DAYS")
    return timedelta(days=float(days)) if days else DEFAULT_RETENTION


def build_scheduler(engine: Engine) -> Optional[CleanupScheduler]:
    hours = os.getenv("CLEANUP_INTERVAL_HOURS")
    if not hours:
        return None

    interval = timedelta(hours=float(hours))
    if interval <= timedelta(0):
        raise ValueError("CLEANUP_INTERVAL_HOURS must be positive")

    return CleanupScheduler(engine, interval, retention_from_env())
