"""
Organization management API endpoints.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from taskflow.api.auth import UserResponse, user_response
from taskflow.core.access import Scope
from taskflow.core.auth import get_current_scope_dependency
from taskflow.core.database import get_db
from taskflow.models.organization import Organization
from taskflow.services.organization import (
    OrganizationPatch,
    change_member_role,
    get_current_organization,
    get_organization_statistics,
    list_members,
    remove_member,
    update_organization,
)

router = APIRouter()


class OrganizationSettings(BaseModel):
    theme: Optional[str] = None


class UpdateOrganizationRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    settings: Optional[OrganizationSettings] = None


class UpdateMemberRoleRequest(BaseModel):
    role: str  # 'admin', 'manager' or 'member'


class OrganizationResponse(BaseModel):
    id: int
    name: str
    code: str
    description: Optional[str]
    settings: OrganizationSettings
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrganizationStatisticsResponse(BaseModel):
    member_count: int
    pending_invitations: int


def organization_response(organization: Organization) -> OrganizationResponse:
    return OrganizationResponse(
        id=organization.id,
        name=organization.name,
        code=organization.code,
        description=organization.description,
        settings=OrganizationSettings(theme=organization.theme),
        created_at=organization.created_at
    )


@router.get("/current", response_model=OrganizationResponse)
async def get_organization(
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Get the caller's organization, including its join-code."""
    return organization_response(get_current_organization(db, scope))


@router.put("/current", response_model=OrganizationResponse)
async def update_current_organization(
    request: UpdateOrganizationRequest,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Update organization name, description or settings (admin only)."""
    fields = request.model_dump(exclude_unset=True, exclude={"settings"})
    if request.settings is not None and "theme" in request.settings.model_fields_set:
        fields["theme"] = request.settings.theme

    organization = update_organization(db, scope, OrganizationPatch.from_fields(fields))
    return organization_response(organization)


@router.get("/members", response_model=List[UserResponse])
async def get_members(
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """List all members of the caller's organization."""
    return [user_response(member) for member in list_members(db, scope)]


@router.patch("/members/{user_id}/role", response_model=UserResponse)
async def update_member_role(
    user_id: int,
    request: UpdateMemberRoleRequest,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Update a member's role (admin only)."""
    return user_response(change_member_role(db, scope, user_id, request.role))


@router.delete("/members/{user_id}")
async def delete_member(
    user_id: int,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Remove a member from the organization (admin only, never yourself)."""
    remove_member(db, scope, user_id)
    return {"message": "Member removed successfully"}


@router.get("/statistics", response_model=OrganizationStatisticsResponse)
async def get_statistics(
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Member and pending invitation counts."""
    return OrganizationStatisticsResponse(**get_organization_statistics(db, scope))
