"""
Task lifecycle engine: creation, partial updates, status changes, the
expiration sweep and the statistics view.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Query, Session, joinedload

from taskflow.core.access import Operation, Scope
from taskflow.core.errors import NotFoundError, ValidationError
from taskflow.core.patch import UNSET, Patch
from taskflow.models.task import OPEN_STATUSES, Task, TaskCategory, TaskPriority, TaskStatus
from taskflow.models.user import User

logger = logging.getLogger(__name__)

MAX_DUE_SOON_DAYS = 30


@dataclass(frozen=True)
class TaskPatch(Patch):
    """Full-update patch. Organization and creator are never patchable."""

    title: Any = UNSET
    description: Any = UNSET
    category: Any = UNSET
    priority: Any = UNSET
    due_date: Any = UNSET
    assigned_to: Any = UNSET


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_due_date(value: Any) -> datetime:
    """Parse an ISO-8601 string or datetime into an aware UTC timestamp."""
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return to_utc(datetime.fromisoformat(text))
        except ValueError:
            pass
    raise ValidationError("Due date must be a valid timestamp")


def _enum_value(enum_cls, value: Any, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"Invalid {field}. Must be one of: {allowed}")


def _tasks(db: Session, scope: Scope) -> Query:
    """Organization-scoped task query with display fields populated."""
    return scope.apply(db.query(Task), Task).options(
        joinedload(Task.assignee),
        joinedload(Task.creator),
    )


def _resolve_assignee(db: Session, scope: Scope, user_id: Optional[int]) -> Optional[int]:
    if user_id is None:
        return None
    assignee = scope.apply(db.query(User), User).filter(User.id == user_id).first()
    if not assignee:
        raise NotFoundError("Assigned user not found")
    scope.authorize(Operation.READ, resource=assignee)
    return assignee.id


def list_tasks(db: Session, scope: Scope) -> list[Task]:
    """All tasks of the caller's organization, newest first."""
    return _tasks(db, scope).order_by(Task.created_at.desc(), Task.id.desc()).all()


def list_assigned_tasks(db: Session, scope: Scope) -> list[Task]:
    """Tasks assigned to the caller, soonest due first."""
    return _tasks(db, scope).filter(Task.assigned_to == scope.caller.id).order_by(Task.due_date.asc()).all()


def list_tasks_due_soon(db: Session, scope: Scope, days: int = 1, now: Optional[datetime] = None) -> list[Task]:
    """Open tasks of the caller's organization due within the next `days` days."""
    if days < 1 or days > MAX_DUE_SOON_DAYS:
        raise ValidationError(f"Days must be between 1 and {MAX_DUE_SOON_DAYS}")
    now = to_utc(now or datetime.now(timezone.utc))
    return _tasks(db, scope).filter(
        Task.due_date >= now,
        Task.due_date <= now + timedelta(days=days),
        Task.status.in_(OPEN_STATUSES),
    ).order_by(Task.due_date.asc()).all()


def get_task(db: Session, scope: Scope, task_id: int) -> Task:
    """Get a task; absent tasks and tasks of other organizations are both NOT_FOUND."""
    task = _tasks(db, scope).filter(Task.id == task_id).first()
    if not task:
        raise NotFoundError("Task not found")
    scope.authorize(Operation.READ, task=task)
    return task


def create_task(
    db: Session,
    scope: Scope,
    title: str,
    due_date: Any,
    description: Optional[str] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    assigned_to: Optional[int] = None,
) -> Task:
    """Create a task in the caller's organization (manager/admin)."""
    scope.authorize(Operation.TASK_CREATE)

    if not title or not title.strip():
        raise ValidationError("Title is required")

    task = Task(
        title=title.strip(),
        description=description or None,
        category=_enum_value(TaskCategory, category, "category") if category is not None else TaskCategory.OTHER,
        priority=_enum_value(TaskPriority, priority, "priority") if priority is not None else TaskPriority.MEDIUM,
        status=TaskStatus.TODO,
        due_date=parse_due_date(due_date),
        assigned_to=_resolve_assignee(db, scope, assigned_to),
        created_by=scope.caller.id,
        organization_id=scope.organization_id,
    )
    db.add(task)
    db.commit()

    logger.info(f"User {scope.caller.id} created task {task.id} in organization {scope.organization_id}")
    return get_task(db, scope, task.id)


def update_task(db: Session, scope: Scope, task_id: int, patch: TaskPatch) -> Task:
    """
    Apply a partial update to a task (manager/admin).

    Absent fields are left untouched. An explicit null clears `description`
    and `assigned_to`; the remaining fields cannot be cleared.
    """
    scope.authorize(Operation.TASK_UPDATE)
    task = get_task(db, scope, task_id)
    scope.authorize(Operation.TASK_UPDATE, task=task)

    for field in ("title", "category", "priority", "due_date"):
        if patch.is_set(field) and getattr(patch, field) is None:
            raise ValidationError(f"Field '{field}' cannot be cleared")

    if patch.is_set("title"):
        if not patch.title.strip():
            raise ValidationError("Title cannot be empty")
        task.title = patch.title.strip()
    if patch.is_set("description"):
        task.description = patch.description or None
    if patch.is_set("category"):
        task.category = _enum_value(TaskCategory, patch.category, "category")
    if patch.is_set("priority"):
        task.priority = _enum_value(TaskPriority, patch.priority, "priority")
    if patch.is_set("due_date"):
        task.due_date = parse_due_date(patch.due_date)
    if patch.is_set("assigned_to"):
        task.assigned_to = _resolve_assignee(db, scope, patch.assigned_to)

    db.commit()
    return get_task(db, scope, task.id)


def change_task_status(db: Session, scope: Scope, task_id: int, status: str) -> Task:
    """
    Set a task's status.

    Any member of the organization may call this, but a `member` only on tasks
    that are unassigned or assigned to them. Any enumerated status is accepted
    verbatim; transitions are not forced forward.
    """
    task = get_task(db, scope, task_id)
    scope.authorize(Operation.TASK_STATUS_CHANGE, task=task)

    new_status = _enum_value(TaskStatus, status, "status")
    previous_status = task.status
    task.status = new_status
    db.commit()

    logger.info(
        f"User {scope.caller.id} changed status of task {task.id}: "
        f"{TaskStatus(previous_status).value} -> {new_status.value}"
    )
    return get_task(db, scope, task.id)


def delete_task(db: Session, scope: Scope, task_id: int) -> None:
    """Delete a task (manager/admin)."""
    scope.authorize(Operation.TASK_DELETE)
    deleted = scope.apply(db.query(Task), Task).filter(Task.id == task_id).delete(synchronize_session=False)
    if not deleted:
        db.rollback()
        raise NotFoundError("Task not found")
    db.commit()
    logger.info(f"User {scope.caller.id} deleted task {task_id}")


def expire_overdue_tasks(db: Session, now: Optional[datetime] = None) -> int:
    """
    Mark every open task whose due date has passed as expired.

    One conditional bulk UPDATE: the status predicate is re-checked by the
    database at write time, so a task completed concurrently is left alone.
    Running it again without intervening changes affects no rows.

    Args:
        db: Database session
        now: Reference time (defaults to the current UTC time)

    Returns:
        Number of tasks moved to expired
    """
    now = to_utc(now or datetime.now(timezone.utc))
    try:
        count = db.query(Task).filter(
            Task.due_date < now,
            Task.status.in_(OPEN_STATUSES),
        ).update({Task.status: TaskStatus.EXPIRED}, synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return count


def get_task_statistics(db: Session, scope: Scope, now: Optional[datetime] = None) -> dict:
    """
    Aggregate view over the caller's organization tasks, recomputed per call.

    `overdue` counts open tasks past their due date; it can exceed the
    `expired` count because the sweep only runs periodically.
    """
    now = to_utc(now or datetime.now(timezone.utc))

    by_status = {s.value: 0 for s in TaskStatus}
    for status, count in scope.apply(db.query(Task.status, func.count(Task.id)), Task).group_by(Task.status).all():
        by_status[TaskStatus(status).value] = count

    by_category = {}
    for category, count in scope.apply(db.query(Task.category, func.count(Task.id)), Task).group_by(Task.category).all():
        by_category[TaskCategory(category).value] = count

    by_priority = {}
    for priority, count in scope.apply(db.query(Task.priority, func.count(Task.id)), Task).group_by(Task.priority).all():
        by_priority[TaskPriority(priority).value] = count

    overdue = scope.apply(db.query(func.count(Task.id)), Task).filter(
        Task.status.in_(OPEN_STATUSES),
        Task.due_date < now,
    ).scalar() or 0

    completed = case((Task.status == TaskStatus.COMPLETED, 1), else_=0)
    user_rows = (
        db.query(User.id, User.name, User.email, func.count(Task.id), func.sum(completed))
        .outerjoin(Task, and_(Task.assigned_to == User.id, Task.organization_id == scope.organization_id))
        .filter(User.organization_id == scope.organization_id)
        .group_by(User.id, User.name, User.email)
        .order_by(User.name.asc())
        .all()
    )
    by_user = [
        {
            "user_id": user_id,
            "name": name,
            "email": email,
            "total": total or 0,
            "completed": int(completed_count or 0),
        }
        for user_id, name, email, total, completed_count in user_rows
    ]

    return {
        "total": sum(by_status.values()),
        "todo_count": by_status[TaskStatus.TODO.value],
        "in_progress_count": by_status[TaskStatus.IN_PROGRESS.value],
        "completed_count": by_status[TaskStatus.COMPLETED.value],
        "expired_count": by_status[TaskStatus.EXPIRED.value],
        "overdue": overdue,
        "by_status": by_status,
        "by_category": by_category,
        "by_priority": by_priority,
        "by_user": by_user,
    }
