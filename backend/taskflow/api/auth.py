"""
Authentication endpoints.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from taskflow.core.auth import get_current_user_dependency, issue_token
from taskflow.core.database import get_db
from taskflow.models.user import User
from taskflow.services.identity import authenticate_user, register_user

router = APIRouter()


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    organization_name: Optional[str] = None
    invite_token: Optional[str] = None
    organization_code: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    organization_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    user: UserResponse
    token: str


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        organization_id=user.organization_id,
        created_at=user.created_at
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a new user.

    Supply exactly one of `organization_name` (create an organization and
    become its admin), `invite_token` (redeem an invitation) or
    `organization_code` (join an organization as a member).
    """
    user = register_user(
        db,
        name=request.name,
        email=request.email,
        password=request.password,
        organization_name=request.organization_name,
        invite_token=request.invite_token,
        organization_code=request.organization_code,
    )
    return AuthResponse(user=user_response(user), token=issue_token(user.id))


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    db: Session = Depends(get_db)
):
    """Login with email and password."""
    user = authenticate_user(db, request.email, request.password)
    return AuthResponse(user=user_response(user), token=issue_token(user.id))


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: User = Depends(get_current_user_dependency)
):
    """Get current user info."""
    return user_response(current_user)
