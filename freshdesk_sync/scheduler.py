"""APScheduler-based interval scheduling for full syncs."""

from __future__ import annotations

import logging
import time

from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.blocking import BlockingScheduler

from freshdesk_sync.config import SyncConfig
from freshdesk_sync.db import Database
from freshdesk_sync.sync_runner import ALL_COLLECTIONS

logger = logging.getLogger("freshdesk_sync.scheduler")

BACKOFF_BASE_SECONDS = 30


def sync_with_retries(config: SyncConfig, db: Database) -> None:
    """Run one full sync session, retrying the whole session with exponential back-off.

    Every attempt builds a new session, so a retry never reuses an agent
    cache or cursor left behind by the failed attempt.
    """
    from freshdesk_sync.cli import run_sync

    max_retries = config.scheduler.max_retries
    for attempt in range(max_retries + 1):
        try:
            results = run_sync(config, db, list(ALL_COLLECTIONS))
            logger.info("Scheduled sync complete: %s", results)
            return
        except Exception as exc:
            if attempt >= max_retries:
                logger.error("Sync failed after %d retries: %s", max_retries, exc)
                raise
            delay = BACKOFF_BASE_SECONDS * (2 ** attempt)
            logger.warning(
                "Sync failed (attempt %d/%d), retrying in %ds: %s",
                attempt + 1, max_retries, delay, exc,
            )
            time.sleep(delay)


def _on_job_error(event) -> None:
    logger.error("Job %s raised an exception: %s", event.job_id, event.exception)


def build_scheduler(config: SyncConfig, db: Database) -> BlockingScheduler:
    scheduler = BlockingScheduler()
    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_job(
        sync_with_retries,
        "interval",
        minutes=config.scheduler.sync_interval_min,
        args=[config, db],
        id="freshdesk_sync",
        max_instances=1,
        misfire_grace_time=config.scheduler.misfire_grace_time,
    )
    return scheduler


def start_scheduler(config: SyncConfig, db: Database) -> None:
    """Start the blocking scheduler."""
    scheduler = build_scheduler(config, db)
    logger.info("Starting scheduler with jobs: %s", [j.id for j in scheduler.get_jobs()])
    scheduler.start()
