"""
Organization invitation API endpoints.
"""
from datetime import datetime
from functools import partial
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from taskflow.core.access import Scope
from taskflow.core.auth import get_current_scope_dependency
from taskflow.core.database import get_db
from taskflow.models.organization_invitation import OrganizationInvitation
from taskflow.services import invitation as invitation_service

router = APIRouter()


class CreateInvitationRequest(BaseModel):
    email: EmailStr
    role: str = "member"  # 'admin', 'manager' or 'member'


class InvitationResponse(BaseModel):
    id: int
    email: str
    role: str
    status: str
    organization_id: int
    invited_by: Optional[int]
    expires_at: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IssuedInvitationResponse(InvitationResponse):
    token: str


class InvitationOrganization(BaseModel):
    id: int
    name: str


class ValidateInvitationResponse(BaseModel):
    valid: bool
    organization: Optional[InvitationOrganization] = None
    role: Optional[str] = None


def _fields(invitation: OrganizationInvitation) -> dict:
    return dict(
        id=invitation.id,
        email=invitation.email,
        role=invitation.role,
        status=invitation.status.value,
        organization_id=invitation.organization_id,
        invited_by=invitation.invited_by,
        expires_at=invitation.expires_at,
        created_at=invitation.created_at
    )


def _deferred_notifier(background_tasks: BackgroundTasks):
    """Run the invitation email after the response is sent."""
    return partial(background_tasks.add_task, invitation_service.notify_invitation)


@router.get("/pending", response_model=List[InvitationResponse])
async def get_pending_invitations(
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """List pending invitations of the organization (managers and admins)."""
    invitations = invitation_service.list_pending_invitations(db, scope)
    return [InvitationResponse(**_fields(invitation)) for invitation in invitations]


@router.post("", response_model=IssuedInvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    request: CreateInvitationRequest,
    background_tasks: BackgroundTasks,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """
    Invite an email address to join the organization (managers and admins).

    The invitation is stored before the email goes out; a failed email does
    not fail the request.
    """
    invitation = invitation_service.issue_invitation(
        db,
        scope,
        email=request.email,
        role=request.role,
        notify=_deferred_notifier(background_tasks),
    )
    return IssuedInvitationResponse(token=invitation.token, **_fields(invitation))


@router.get("/validate/{token}", response_model=ValidateInvitationResponse)
async def validate_invitation(
    token: str,
    db: Session = Depends(get_db)
):
    """Check an invitation token without authentication (used by the sign-up page)."""
    return ValidateInvitationResponse(**invitation_service.validate_invitation(db, token))


@router.delete("/{invitation_id}")
async def cancel_invitation(
    invitation_id: int,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Cancel a pending invitation (managers and admins)."""
    invitation_service.cancel_invitation(db, scope, invitation_id)
    return {"message": "Invitation cancelled successfully"}


@router.post("/{invitation_id}/resend", response_model=InvitationResponse)
async def resend_invitation(
    invitation_id: int,
    background_tasks: BackgroundTasks,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Extend a pending invitation and send the email again (managers and admins)."""
    invitation = invitation_service.resend_invitation(
        db,
        scope,
        invitation_id,
        notify=_deferred_notifier(background_tasks),
    )
    return InvitationResponse(**_fields(invitation))
