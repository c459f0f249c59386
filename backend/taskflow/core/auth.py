"""
Identity tokens and authentication dependencies.
"""
import base64
import hashlib
import hmac
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from taskflow.core.access import Scope, resolve_scope
from taskflow.core.config import SESSION_SECRET, SESSION_TOKEN_EXPIRY_DAYS
from taskflow.core.database import get_db
from taskflow.core.errors import UnauthenticatedError
from taskflow.models.user import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _secret() -> bytes:
    return SESSION_SECRET.encode() if SESSION_SECRET else b'default-secret-change-in-prod'


def _sign(payload: str) -> str:
    return hmac.new(_secret(), payload.encode(), hashlib.sha256).hexdigest()


def issue_token(user_id: int, issued_at: Optional[datetime] = None) -> str:
    """Create a signed identity token for a user."""
    token_data = {
        'user_id': user_id,
        'issued_at': (issued_at or datetime.now(timezone.utc)).isoformat(),
    }
    token_json = json.dumps(token_data, sort_keys=True)
    payload = base64.urlsafe_b64encode(token_json.encode()).decode().rstrip("=")
    return f"{payload}.{_sign(payload)}"


def verify_token(token: str, now: Optional[datetime] = None) -> Optional[int]:
    """Return the user id carried by a valid, unexpired token, or None."""
    if not token:
        return None

    parts = token.rsplit('.', 1)
    if len(parts) != 2:
        return None

    payload, signature = parts
    # Header is client-supplied and may carry non-ASCII characters
    if not hmac.compare_digest(signature.encode(), _sign(payload).encode()):
        return None

    try:
        padded = payload + "=" * (-len(payload) % 4)
        token_data = json.loads(base64.urlsafe_b64decode(padded.encode()))
        issued_at = datetime.fromisoformat(token_data['issued_at'])
        user_id = int(token_data['user_id'])
    except (ValueError, KeyError, TypeError):
        return None

    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    if (now or datetime.now(timezone.utc)) - issued_at > timedelta(days=SESSION_TOKEN_EXPIRY_DAYS):
        return None

    return user_id


def get_current_user_dependency(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Dependency to get current authenticated user."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise UnauthenticatedError("No token, authorization denied")

    user_id = verify_token(credentials.credentials)
    if user_id is None:
        raise UnauthenticatedError("Token is not valid")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UnauthenticatedError("User not found")

    return user


def get_current_scope_dependency(
    current_user: User = Depends(get_current_user_dependency),
) -> Scope:
    """Dependency resolving the caller's organization scope."""
    return resolve_scope(current_user)
