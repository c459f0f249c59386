"""
Scheduler service for periodic background jobs.
"""
from taskflow.services.scheduler.scheduler_service import (
    get_scheduler,
    is_scheduler_running,
    start_scheduler,
    stop_scheduler,
)
from taskflow.services.scheduler.task_expiration import (
    EXPIRATION_JOB_ID,
    add_expiration_job,
    run_expiration_sweep,
)

__all__ = [
    "get_scheduler",
    "is_scheduler_running",
    "start_scheduler",
    "stop_scheduler",
    "EXPIRATION_JOB_ID",
    "add_expiration_job",
    "run_expiration_sweep",
]
