"""
Identity service: registration (three join paths) and credential checks.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskflow.core.errors import (
    DuplicateCredentialError,
    InvalidInvitationError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from taskflow.core.security import hash_password, verify_password
from taskflow.models.user import User, UserRole
from taskflow.services.invitation import claim_invitation, mark_accepted, normalize_email
from taskflow.services.organization import create_organization, get_organization_by_code

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_BYTES = 72  # bcrypt input limit


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def _validate_registration(name: str, email: str, password: str, join_options: list) -> None:
    if not name or not name.strip():
        raise ValidationError("Name is required")
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    if sum(1 for option in join_options if option) != 1:
        raise ValidationError(
            "Provide exactly one of: an organization name, an invitation token or an organization code"
        )


def register_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    organization_name: Optional[str] = None,
    invite_token: Optional[str] = None,
    organization_code: Optional[str] = None,
    now: Optional[datetime] = None,
) -> User:
    """
    Register a user through one of three join paths.

    - `organization_name`: create a new organization, the user becomes its admin
    - `invite_token`: redeem an invitation, the user gets the invited role
    - `organization_code`: join an existing organization as a member

    For invitations the user row is written before the invitation is flipped to
    accepted, and both land in one commit, so a failed registration never burns
    the invitation.

    Returns:
        Created User object
    """
    _validate_registration(name, email, password, [organization_name, invite_token, organization_code])
    email = normalize_email(email)

    if get_user_by_email(db, email):
        raise DuplicateCredentialError()

    invitation = None
    try:
        if invite_token:
            invitation = claim_invitation(db, invite_token, email, now)
            organization_id = invitation.organization_id
            role = invitation.role
        elif organization_code:
            organization = get_organization_by_code(db, organization_code)
            if not organization:
                raise NotFoundError("Organization not found")
            organization_id = organization.id
            role = UserRole.MEMBER.value
        else:
            organization = create_organization(db, organization_name)
            organization_id = organization.id
            role = UserRole.ADMIN.value

        user = User(
            name=name.strip(),
            email=email,
            hashed_password=hash_password(password),
            role=role,
            organization_id=organization_id,
        )
        db.add(user)
        db.flush()  # Flush to get the user ID before touching the invitation

        if invitation is not None and not mark_accepted(db, invitation.id):
            # Redeemed concurrently by another registration
            raise InvalidInvitationError()

        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateCredentialError()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    if invitation is not None:
        logger.info(f"User {user.id} accepted invitation {invitation.id} into organization {organization_id}")
    logger.info(f"Registered user {user.id} as {role} in organization {organization_id}")
    return user


def authenticate_user(db: Session, email: str, password: str) -> User:
    """Check credentials; unknown email and wrong password are indistinguishable."""
    user = get_user_by_email(db, email) if email else None
    if not user or not verify_password(password, user.hashed_password):
        raise UnauthenticatedError("Invalid credentials")
    return user
