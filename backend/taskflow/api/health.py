"""
Health check endpoint.
"""
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from taskflow.core.database import get_db
from taskflow.services.scheduler import is_scheduler_running

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health(db: Session = Depends(get_db)):
    """Report database connectivity and scheduler state."""
    start = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
        database = {"status": "connected", "latency_ms": round((time.perf_counter() - start) * 1000, 2)}
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        database = {"status": "disconnected", "latency_ms": None}

    healthy = database["status"] == "connected"
    return {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": database,
            "scheduler": {"running": is_scheduler_running()},
        },
    }
