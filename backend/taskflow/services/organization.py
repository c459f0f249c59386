"""
Organization service for managing organizations and members.
"""
import logging
import re
import secrets
import string
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from taskflow.core.access import Operation, Scope
from taskflow.core.errors import NotFoundError, ValidationError
from taskflow.core.patch import UNSET, Patch
from taskflow.models.organization import Organization, THEMES
from taskflow.models.organization_invitation import OrganizationInvitation, InvitationStatus
from taskflow.models.task import Task
from taskflow.models.user import User, UserRole

logger = logging.getLogger(__name__)

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_PREFIX_LENGTH = 4
JOIN_CODE_SUFFIX_LENGTH = 4


@dataclass(frozen=True)
class OrganizationPatch(Patch):
    name: Any = UNSET
    description: Any = UNSET
    theme: Any = UNSET


def normalize_join_code(code: str) -> str:
    return code.strip().upper()


def generate_join_code(db: Session, name: str) -> str:
    """
    Generate a unique join-code for an organization.

    The code is an upper-case prefix derived from the name followed by random
    characters, e.g. ``ACME7K2Q``.

    Args:
        db: Database session
        name: Organization name

    Returns:
        Join-code not used by any other organization
    """
    prefix = re.sub(r'[^A-Z0-9]+', '', name.upper())[:JOIN_CODE_PREFIX_LENGTH] or "ORG"
    while True:
        suffix = ''.join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(JOIN_CODE_SUFFIX_LENGTH))
        code = f"{prefix}{suffix}"
        if not db.query(Organization).filter(Organization.code == code).first():
            return code


def create_organization(db: Session, name: str, description: Optional[str] = None) -> Organization:
    """
    Create an organization with a fresh join-code.

    The organization is flushed, not committed: the caller commits it together
    with the admin user that owns it.

    Args:
        db: Database session
        name: Organization name
        description: Optional description

    Returns:
        Created Organization object
    """
    name = name.strip()
    if not name:
        raise ValidationError("Organization name is required")

    organization = Organization(
        name=name,
        code=generate_join_code(db, name),
        description=description,
        theme="light",
    )
    db.add(organization)
    db.flush()  # Flush to get the ID
    return organization


def get_organization_by_code(db: Session, code: str) -> Organization | None:
    """Find the organization owning a join-code."""
    return db.query(Organization).filter(Organization.code == normalize_join_code(code)).first()


def get_current_organization(db: Session, scope: Scope) -> Organization:
    """Get the caller's organization."""
    organization = db.query(Organization).filter(Organization.id == scope.organization_id).first()
    if not organization:
        raise NotFoundError("Organization not found")
    return organization


def update_organization(db: Session, scope: Scope, patch: OrganizationPatch) -> Organization:
    """
    Apply a partial update to the caller's organization (admin only).

    The join-code is immutable and cannot be patched.
    """
    scope.authorize(Operation.ORGANIZATION_UPDATE)
    organization = get_current_organization(db, scope)

    if patch.is_set("name"):
        if not patch.name or not patch.name.strip():
            raise ValidationError("Organization name cannot be empty")
        organization.name = patch.name.strip()

    if patch.is_set("description"):
        organization.description = patch.description or None

    if patch.is_set("theme"):
        if patch.theme not in THEMES:
            raise ValidationError(f"Theme must be one of: {', '.join(THEMES)}")
        organization.theme = patch.theme

    db.commit()
    db.refresh(organization)
    return organization


def list_members(db: Session, scope: Scope) -> list[User]:
    """Members of the caller's organization, newest first."""
    return scope.apply(db.query(User), User).order_by(User.created_at.desc(), User.id.desc()).all()


def get_member(db: Session, scope: Scope, user_id: int) -> User:
    """Get a member of the caller's organization; absent and foreign users look the same."""
    user = scope.apply(db.query(User), User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def admins_query(db: Session, organization_id: int) -> Query:
    """
    Admin rows of an organization, locked until the end of the transaction.

    Concurrent demotions or removals in the same organization serialize on
    these rows, so the last-admin check always sees the committed state.
    """
    return db.query(User.id).filter(
        User.organization_id == organization_id,
        User.role == UserRole.ADMIN.value
    ).with_for_update()


def _leaves_no_admin(db: Session, organization_id: int, user_id: int) -> bool:
    admin_ids = {row.id for row in admins_query(db, organization_id).all()}
    return admin_ids == {user_id}


def change_member_role(db: Session, scope: Scope, user_id: int, role: str) -> User:
    """
    Change a member's role (admin only).

    Rejects a change that would leave the organization without an admin.
    """
    scope.authorize(Operation.MEMBER_ROLE_CHANGE)

    if role not in {r.value for r in UserRole}:
        raise ValidationError("Invalid role")

    user = get_member(db, scope, user_id)
    scope.authorize(Operation.MEMBER_ROLE_CHANGE, resource=user)

    if role != UserRole.ADMIN.value and _leaves_no_admin(db, scope.organization_id, user.id):
        db.rollback()
        raise ValidationError("An organization must keep at least one admin")

    previous_role = user.role
    user.role = role
    db.commit()
    db.refresh(user)

    logger.info(
        f"User {scope.caller.id} changed role of user {user.id} "
        f"in organization {scope.organization_id}: {previous_role} -> {role}"
    )
    return user


def remove_member(db: Session, scope: Scope, user_id: int) -> None:
    """
    Remove a member from the organization (admin only, never self).

    Tasks assigned to the removed user become unassigned; references from tasks
    they created and invitations they sent are cleared.
    """
    scope.authorize(Operation.MEMBER_REMOVE, target_user_id=user_id)

    user = get_member(db, scope, user_id)
    scope.authorize(Operation.MEMBER_REMOVE, resource=user, target_user_id=user.id)

    if _leaves_no_admin(db, scope.organization_id, user.id):
        db.rollback()
        raise ValidationError("An organization must keep at least one admin")

    try:
        scope.apply(db.query(Task), Task).filter(Task.assigned_to == user.id).update(
            {Task.assigned_to: None}, synchronize_session=False
        )
        scope.apply(db.query(Task), Task).filter(Task.created_by == user.id).update(
            {Task.created_by: None}, synchronize_session=False
        )
        scope.apply(db.query(OrganizationInvitation), OrganizationInvitation).filter(
            OrganizationInvitation.invited_by == user.id
        ).update({OrganizationInvitation.invited_by: None}, synchronize_session=False)
        db.delete(user)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"User {scope.caller.id} removed user {user_id} from organization {scope.organization_id}")


def get_organization_statistics(db: Session, scope: Scope) -> dict:
    """Member count and pending invitation count of the caller's organization."""
    member_count = scope.apply(db.query(func.count(User.id)), User).scalar()
    pending_invitations = scope.apply(
        db.query(func.count(OrganizationInvitation.id)), OrganizationInvitation
    ).filter(OrganizationInvitation.status == InvitationStatus.PENDING).scalar()

    return {
        "member_count": member_count or 0,
        "pending_invitations": pending_invitations or 0,
    }
