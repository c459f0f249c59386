"""
Task expiration job.

Runs on a fixed interval, independent of requests, and moves every open task
whose due date has passed to `expired`.
"""
import logging
from datetime import datetime
from typing import Optional
from apscheduler.triggers.interval import IntervalTrigger
from taskflow.core import config
from taskflow.core.database import SessionLocal
from taskflow.services.task import expire_overdue_tasks

logger = logging.getLogger(__name__)

EXPIRATION_JOB_ID = "task_expiration_sweep"


def run_expiration_sweep(now: Optional[datetime] = None) -> Optional[int]:
    """
    Run one sweep in its own session.

    A failing tick is logged and swallowed so the next scheduled tick still
    fires; there is no retry within the same tick.

    Returns:
        Number of tasks expired, or None if the sweep failed
    """
    db = SessionLocal()
    try:
        count = expire_overdue_tasks(db, now=now)
        logger.info(f"Expiration sweep completed: {count} tasks expired")
        return count
    except Exception as e:
        logger.error(f"Error running expiration sweep: {e}", exc_info=True)
        return None
    finally:
        db.close()


def add_expiration_job():
    """Add the expiration sweep to the scheduler."""
    from taskflow.services.scheduler.scheduler_service import get_scheduler

    scheduler = get_scheduler()
    interval_minutes = config.TASK_EXPIRATION_SWEEP_INTERVAL_MINUTES

    scheduler.add_job(
        run_expiration_sweep,
        trigger=IntervalTrigger(minutes=interval_minutes),
        id=EXPIRATION_JOB_ID,
        replace_existing=True,
        max_instances=1,  # Prevent overlapping sweeps
        coalesce=True,
    )

    logger.info(f"Added task expiration job (every {interval_minutes} minutes)")
