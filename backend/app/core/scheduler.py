"""Background scheduler for the cleanup sweep jobs."""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, List

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.services import cleanup
from app.utils.datetime_helper import utc_now

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_HOURS = 3.0

SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() in ("1", "true", "yes")


def _interval_hours(name: str) -> float:
    value = os.getenv(f"CLEANUP_{name.upper()}_INTERVAL_HOURS")
    return float(value) if value else DEFAULT_INTERVAL_HOURS


@dataclass
class SweepJob:
    """A cleanup task and how often it runs."""

    name: str
    interval_hours: float
    func: Callable[[Session], Dict[str, int]]


SWEEP_JOBS: List[SweepJob] = [
    SweepJob("proposals", _interval_hours("proposals"), cleanup.expire_proposals),
    SweepJob("rooms", _interval_hours("rooms"), cleanup.cleanup_rooms),
    SweepJob("room_codes", _interval_hours("room_codes"), cleanup.cleanup_room_codes),
    SweepJob(
        "spotify_states",
        _interval_hours("spotify_states"),
        cleanup.cleanup_spotify_states,
    ),
    SweepJob("tokens", _interval_hours("tokens"), cleanup.cleanup_tokens),
]

scheduler = AsyncIOScheduler()


def run_sweep(job: SweepJob, session_factory=SessionLocal) -> None:
    """Run one sweep in its own session; failures are logged and retried next tick."""
    try:
        with session_factory() as session:
            stats = job.func(session)
            logger.info(f"Sweep {job.name} completed: {stats}")
    except Exception:
        logger.exception(f"Sweep {job.name} failed, will retry on next run")


def start_scheduler(jobs: List[SweepJob] = SWEEP_JOBS) -> None:
    """Register every sweep job and start the scheduler. Each job also runs once at startup."""
    for job in jobs:
        scheduler.add_job(
            run_sweep,
            trigger=IntervalTrigger(hours=job.interval_hours),
            args=[job],
            id=f"sweep_{job.name}",
            replace_existing=True,
            next_run_time=utc_now(),
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Scheduled sweep {job.name} every {job.interval_hours:g} hours")

    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler() -> None:
    """Graceful shutdown."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")
