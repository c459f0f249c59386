"""
Scheduler service owning the process-wide APScheduler instance.
"""
import logging
from typing import Optional
from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None


def get_scheduler() -> BackgroundScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = BackgroundScheduler(timezone="UTC")
    return _scheduler


def is_scheduler_running() -> bool:
    return _scheduler is not None and _scheduler.running


def start_scheduler():
    """Start the scheduler and register the periodic jobs."""
    from taskflow.services.scheduler.task_expiration import add_expiration_job

    scheduler = get_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")
    else:
        logger.debug("Scheduler already running")
    add_expiration_job()


def stop_scheduler():
    """Stop the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    _scheduler = None
