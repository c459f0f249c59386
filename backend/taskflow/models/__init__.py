"""
Database models.
"""
from taskflow.models.organization import Organization
from taskflow.models.user import User, UserRole
from taskflow.models.task import Task, TaskStatus, TaskPriority, TaskCategory
from taskflow.models.organization_invitation import OrganizationInvitation, InvitationStatus

__all__ = [
    "Organization",
    "User",
    "UserRole",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "TaskCategory",
    "OrganizationInvitation",
    "InvitationStatus",
]
