"""
FastAPI application entry point.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from taskflow.api import auth, health, invitations, organizations, tasks
from taskflow.core.config import get_settings
from taskflow.core.errors import StoreError, TaskflowError
from taskflow.services.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)

app_settings = get_settings()

app = FastAPI(
    title="TaskFlow API",
    description="Multi-tenant task tracking with organizations, roles and invitations",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(organizations.router, prefix="/api/organizations", tags=["organizations"])
app.include_router(invitations.router, prefix="/api/invitations", tags=["invitations"])


@app.exception_handler(TaskflowError)
async def taskflow_error_handler(request: Request, exc: TaskflowError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
    error = StoreError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.on_event("startup")
async def startup_event():
    """Start the task expiration sweep."""
    if not app_settings.enable_task_expiration_sweep:
        logger.info("Task expiration sweep disabled")
        return
    try:
        start_scheduler()
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}", exc_info=True)


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    stop_scheduler()
