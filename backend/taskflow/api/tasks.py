"""
Task API endpoints.
"""
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from taskflow.core.access import Scope
from taskflow.core.auth import get_current_scope_dependency
from taskflow.core.database import get_db
from taskflow.models.task import Task
from taskflow.models.user import User
from taskflow.services.task import (
    TaskPatch,
    change_task_status,
    create_task,
    delete_task,
    get_task,
    get_task_statistics,
    list_assigned_tasks,
    list_tasks,
    list_tasks_due_soon,
    update_task,
)

router = APIRouter()


class CreateTaskRequest(BaseModel):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    due_date: str  # ISO-8601
    assigned_to: Optional[int] = None


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None
    assigned_to: Optional[int] = None


class UpdateTaskStatusRequest(BaseModel):
    status: str


class UserSummary(BaseModel):
    id: int
    name: str
    email: str


class TaskResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    category: str
    priority: str
    status: str
    due_date: datetime
    assigned_to: Optional[UserSummary]
    created_by: Optional[UserSummary]
    organization_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserTaskCounts(BaseModel):
    user_id: int
    name: str
    email: str
    total: int
    completed: int


class TaskStatisticsResponse(BaseModel):
    total: int
    todo_count: int
    in_progress_count: int
    completed_count: int
    expired_count: int
    overdue: int
    by_status: Dict[str, int]
    by_category: Dict[str, int]
    by_priority: Dict[str, int]
    by_user: List[UserTaskCounts]


def _user_summary(user: Optional[User]) -> Optional[UserSummary]:
    if user is None:
        return None
    return UserSummary(id=user.id, name=user.name, email=user.email)


def task_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        category=task.category.value,
        priority=task.priority.value,
        status=task.status.value,
        due_date=task.due_date,
        assigned_to=_user_summary(task.assignee),
        created_by=_user_summary(task.creator),
        organization_id=task.organization_id,
        created_at=task.created_at,
        updated_at=task.updated_at
    )


@router.get("", response_model=List[TaskResponse])
async def get_tasks(
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Get all tasks of the caller's organization."""
    return [task_response(task) for task in list_tasks(db, scope)]


@router.get("/assigned", response_model=List[TaskResponse])
async def get_assigned_tasks(
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Get tasks assigned to the current user."""
    return [task_response(task) for task in list_assigned_tasks(db, scope)]


@router.get("/due-soon", response_model=List[TaskResponse])
async def get_tasks_due_soon(
    days: int = Query(1),
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Get open tasks due within the next `days` days."""
    return [task_response(task) for task in list_tasks_due_soon(db, scope, days=days)]


@router.get("/statistics", response_model=TaskStatisticsResponse)
async def get_statistics(
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Get task statistics for the caller's organization."""
    return TaskStatisticsResponse(**get_task_statistics(db, scope))


@router.get("/{task_id}", response_model=TaskResponse)
async def get_single_task(
    task_id: int,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Get a specific task."""
    return task_response(get_task(db, scope, task_id))


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_new_task(
    request: CreateTaskRequest,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Create a new task (managers and admins)."""
    task = create_task(
        db,
        scope,
        title=request.title,
        due_date=request.due_date,
        description=request.description,
        category=request.category,
        priority=request.priority,
        assigned_to=request.assigned_to,
    )
    return task_response(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_existing_task(
    task_id: int,
    request: UpdateTaskRequest,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """
    Update a task (managers and admins).

    Omitted fields are left untouched; `null` clears description or assignee.
    """
    patch = TaskPatch.from_fields(request.model_dump(exclude_unset=True))
    return task_response(update_task(db, scope, task_id, patch))


@router.patch("/{task_id}/status", response_model=TaskResponse)
async def update_task_status(
    task_id: int,
    request: UpdateTaskStatusRequest,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Update task status (members only on unassigned tasks or their own)."""
    return task_response(change_task_status(db, scope, task_id, request.status))


@router.delete("/{task_id}")
async def delete_existing_task(
    task_id: int,
    scope: Scope = Depends(get_current_scope_dependency),
    db: Session = Depends(get_db)
):
    """Delete a task (managers and admins)."""
    delete_task(db, scope, task_id)
    return {"message": "Task deleted successfully"}
