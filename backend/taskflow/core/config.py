"""
Configuration management.
Loads from config_local.py (gitignored) for secrets, with defaults.
"""
import os
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# Try to import local config (gitignored)
try:
    from taskflow.config_local import (
        DATABASE_DSN,
        SESSION_SECRET,
        SMTP_HOST,
        SMTP_PORT,
        SMTP_USE_SSL,
        SMTP_USERNAME,
        SMTP_PASSWORD,
        SMTP_FROM_EMAIL,
        SMTP_FROM_NAME,
        FRONTEND_BASE_URL,
    )
    # Tunables with fallbacks if not present
    try:
        from taskflow.config_local import (
            SESSION_TOKEN_EXPIRY_DAYS,
            BCRYPT_ROUNDS,
            INVITATION_EXPIRY_DAYS,
            TASK_EXPIRATION_SWEEP_INTERVAL_MINUTES,
            ENABLE_TASK_EXPIRATION_SWEEP,
            CORS_ORIGINS,
        )
    except ImportError:
        SESSION_TOKEN_EXPIRY_DAYS = 7
        BCRYPT_ROUNDS = 12
        INVITATION_EXPIRY_DAYS = 7
        TASK_EXPIRATION_SWEEP_INTERVAL_MINUTES = 60
        ENABLE_TASK_EXPIRATION_SWEEP = True
        CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
except ImportError:
    # Fallback defaults, overridable from the environment (used by tests and containers)
    DATABASE_DSN: str = os.getenv("TASKFLOW_DATABASE_DSN", "sqlite:///./taskflow.db")
    SESSION_SECRET: Optional[str] = os.getenv("TASKFLOW_SESSION_SECRET")
    SESSION_TOKEN_EXPIRY_DAYS: int = int(os.getenv("TASKFLOW_SESSION_TOKEN_EXPIRY_DAYS", "7"))
    BCRYPT_ROUNDS: int = int(os.getenv("TASKFLOW_BCRYPT_ROUNDS", "12"))
    INVITATION_EXPIRY_DAYS: int = int(os.getenv("TASKFLOW_INVITATION_EXPIRY_DAYS", "7"))
    TASK_EXPIRATION_SWEEP_INTERVAL_MINUTES: int = int(os.getenv("TASKFLOW_SWEEP_INTERVAL_MINUTES", "60"))
    ENABLE_TASK_EXPIRATION_SWEEP: bool = _env_bool("TASKFLOW_ENABLE_SWEEP", True)
    SMTP_HOST: Optional[str] = os.getenv("TASKFLOW_SMTP_HOST")
    SMTP_PORT: int = int(os.getenv("TASKFLOW_SMTP_PORT", "465"))
    SMTP_USE_SSL: bool = _env_bool("TASKFLOW_SMTP_USE_SSL", True)
    SMTP_USERNAME: Optional[str] = os.getenv("TASKFLOW_SMTP_USERNAME")
    SMTP_PASSWORD: Optional[str] = os.getenv("TASKFLOW_SMTP_PASSWORD")
    SMTP_FROM_EMAIL: Optional[str] = os.getenv("TASKFLOW_SMTP_FROM_EMAIL")
    SMTP_FROM_NAME: str = os.getenv("TASKFLOW_SMTP_FROM_NAME", "TaskFlow")
    FRONTEND_BASE_URL: str = os.getenv("TASKFLOW_FRONTEND_BASE_URL", "http://localhost:3000")
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",      # Frontend dev server (localhost)
        "http://127.0.0.1:3000",      # Frontend dev server (127.0.0.1)
    ]


def get_settings():
    """Return settings object (for FastAPI dependency injection if needed)."""
    return type("Settings", (), {
        "database_dsn": DATABASE_DSN,
        "session_secret": SESSION_SECRET,
        "session_token_expiry_days": SESSION_TOKEN_EXPIRY_DAYS,
        "bcrypt_rounds": BCRYPT_ROUNDS,
        "invitation_expiry_days": INVITATION_EXPIRY_DAYS,
        "task_expiration_sweep_interval_minutes": TASK_EXPIRATION_SWEEP_INTERVAL_MINUTES,
        "enable_task_expiration_sweep": ENABLE_TASK_EXPIRATION_SWEEP,
        "smtp_host": SMTP_HOST,
        "smtp_port": SMTP_PORT,
        "smtp_use_ssl": SMTP_USE_SSL,
        "smtp_username": SMTP_USERNAME,
        "smtp_password": SMTP_PASSWORD,
        "smtp_from_email": SMTP_FROM_EMAIL,
        "smtp_from_name": SMTP_FROM_NAME,
        "frontend_base_url": FRONTEND_BASE_URL,
        "cors_origins": CORS_ORIGINS,
    })()
