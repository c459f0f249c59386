"""
Invitation protocol: issuance, validation, redemption, cancellation and resend.

Invitations expire lazily: expiry is compared against the current time when a
token is validated or redeemed, no background job touches them.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from taskflow.core import config
from taskflow.core.access import Operation, Scope
from taskflow.core.errors import (
    DuplicateInvitationError,
    EmailMismatchError,
    InvalidInvitationError,
    NotFoundError,
    ValidationError,
)
from taskflow.models.organization_invitation import InvitationStatus, OrganizationInvitation
from taskflow.models.user import UserRole
from taskflow.services.email import send_invitation_email

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32

Notifier = Callable[..., Any]


def generate_invitation_token() -> str:
    """Unguessable fixed-length token (64 hex characters)."""
    return secrets.token_hex(TOKEN_BYTES)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _expiry_from(now: datetime) -> datetime:
    return now + timedelta(days=config.INVITATION_EXPIRY_DAYS)


def notify_invitation(email: str, token: str, organization_name: str, role: str, resent: bool = False) -> bool:
    """Best-effort invitation email; failures are logged, never raised."""
    try:
        email_sent = send_invitation_email(
            email=email,
            token=token,
            organization_name=organization_name,
            role=role,
            resent=resent,
        )
    except Exception as e:
        logger.error(f"Error sending invitation email to {email}: {str(e)}", exc_info=True)
        return False

    if not email_sent:
        logger.warning(f"Failed to send invitation email to {email}, but the invitation is stored")
    return email_sent


def _dispatch(notify: Notifier, invitation: OrganizationInvitation, resent: bool) -> None:
    try:
        notify(
            email=invitation.email,
            token=invitation.token,
            organization_name=invitation.organization.name,
            role=invitation.role,
            resent=resent,
        )
    except Exception as e:
        # Persisted invitation stands even when dispatch fails
        logger.error(f"Invitation {invitation.id} notification dispatch failed: {str(e)}", exc_info=True)


def _scoped_pending(db: Session, scope: Scope):
    return scope.apply(db.query(OrganizationInvitation), OrganizationInvitation).filter(
        OrganizationInvitation.status == InvitationStatus.PENDING
    )


def list_pending_invitations(db: Session, scope: Scope) -> list[OrganizationInvitation]:
    """Pending invitations of the caller's organization, newest first (manager/admin)."""
    scope.authorize(Operation.INVITATION_LIST)
    return _scoped_pending(db, scope).order_by(
        OrganizationInvitation.created_at.desc(),
        OrganizationInvitation.id.desc()
    ).all()


def issue_invitation(
    db: Session,
    scope: Scope,
    email: str,
    role: str,
    notify: Notifier = notify_invitation,
    now: Optional[datetime] = None,
) -> OrganizationInvitation:
    """
    Issue an invitation for `email` to join the caller's organization.

    The one-pending-invitation-per-(email, organization) rule is enforced by a
    unique constraint, so two racing requests cannot both succeed.

    Args:
        db: Database session
        scope: Caller scope (manager/admin)
        email: Invitee email, matched case-insensitively
        role: Role granted on redemption
        notify: Notification callable, invoked after the invitation is stored
        now: Reference time (defaults to the current UTC time)

    Returns:
        Stored OrganizationInvitation
    """
    scope.authorize(Operation.INVITATION_CREATE)

    if role not in {r.value for r in UserRole}:
        raise ValidationError("Invalid role")

    email = normalize_email(email)
    now = now or _utcnow()

    invitation = OrganizationInvitation(
        organization_id=scope.organization_id,
        email=email,
        token=generate_invitation_token(),
        role=role,
        status=InvitationStatus.PENDING,
        pending_email=email,
        invited_by=scope.caller.id,
        expires_at=_expiry_from(now),
    )
    db.add(invitation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateInvitationError()

    db.refresh(invitation)
    logger.info(f"User {scope.caller.id} invited {email} as {role} to organization {scope.organization_id}")

    _dispatch(notify, invitation, resent=False)
    return invitation


def find_redeemable_invitation(db: Session, token: str, now: Optional[datetime] = None) -> OrganizationInvitation | None:
    """A pending, unexpired invitation matching the token, if any."""
    if not token:
        return None
    return db.query(OrganizationInvitation).options(
        joinedload(OrganizationInvitation.organization)
    ).filter(
        OrganizationInvitation.token == token,
        OrganizationInvitation.status == InvitationStatus.PENDING,
        OrganizationInvitation.expires_at > (now or _utcnow()),
    ).first()


def validate_invitation(db: Session, token: str, now: Optional[datetime] = None) -> dict:
    """Public, read-only token check."""
    invitation = find_redeemable_invitation(db, token, now)
    if not invitation:
        return {"valid": False}
    return {
        "valid": True,
        "organization": {
            "id": invitation.organization.id,
            "name": invitation.organization.name,
        },
        "role": invitation.role,
    }


def claim_invitation(db: Session, token: str, email: str, now: Optional[datetime] = None) -> OrganizationInvitation:
    """
    Check that `email` may redeem `token`, without mutating anything.

    Raises:
        InvalidInvitationError: no pending, unexpired invitation for the token
        EmailMismatchError: the invitation targets a different address
    """
    invitation = find_redeemable_invitation(db, token, now)
    if not invitation:
        raise InvalidInvitationError()
    if invitation.email != normalize_email(email):
        raise EmailMismatchError()
    return invitation


def mark_accepted(db: Session, invitation_id: int) -> bool:
    """
    Flip a pending invitation to accepted inside the caller's transaction.

    Conditional on the invitation still being pending, so it succeeds exactly
    once. Does not commit.
    """
    updated = db.query(OrganizationInvitation).filter(
        OrganizationInvitation.id == invitation_id,
        OrganizationInvitation.status == InvitationStatus.PENDING,
    ).update(
        {
            OrganizationInvitation.status: InvitationStatus.ACCEPTED,
            OrganizationInvitation.pending_email: None,
        },
        synchronize_session=False,
    )
    return updated == 1


def get_pending_invitation(db: Session, scope: Scope, invitation_id: int) -> OrganizationInvitation:
    invitation = _scoped_pending(db, scope).filter(OrganizationInvitation.id == invitation_id).first()
    if not invitation:
        raise NotFoundError("Invitation not found")
    return invitation


def cancel_invitation(db: Session, scope: Scope, invitation_id: int) -> None:
    """Delete a pending invitation (manager/admin)."""
    scope.authorize(Operation.INVITATION_CANCEL)
    deleted = _scoped_pending(db, scope).filter(
        OrganizationInvitation.id == invitation_id
    ).delete(synchronize_session=False)
    if not deleted:
        db.rollback()
        raise NotFoundError("Invitation not found")
    db.commit()
    logger.info(f"User {scope.caller.id} cancelled invitation {invitation_id}")


def resend_invitation(
    db: Session,
    scope: Scope,
    invitation_id: int,
    notify: Notifier = notify_invitation,
    now: Optional[datetime] = None,
) -> OrganizationInvitation:
    """Extend a pending invitation by a fresh window and re-notify; the token is kept."""
    scope.authorize(Operation.INVITATION_RESEND)
    invitation = get_pending_invitation(db, scope, invitation_id)
    scope.authorize(Operation.INVITATION_RESEND, resource=invitation)

    invitation.expires_at = _expiry_from(now or _utcnow())
    db.commit()
    db.refresh(invitation)
    logger.info(f"User {scope.caller.id} resent invitation {invitation.id}")

    _dispatch(notify, invitation, resent=True)
    return invitation
