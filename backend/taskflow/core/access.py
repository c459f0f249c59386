"""
Access control layer.

Every inbound operation resolves the caller's `Scope` first. The scope carries
the caller and the organization filter that each subsequent query applies, and
evaluates the per-operation authorization predicate against a target resource.

Rules, in order:
    1. the caller must be authenticated                  -> UNAUTHENTICATED
    2. the resource must belong to the caller's org       -> CROSS_TENANT_DENIED
    3. a caller may never remove themselves               -> SELF_REMOVAL_DENIED
    4. admin-only / manager-or-admin operations           -> ROLE_DENIED
    5. members may only change status of tasks that are
       unassigned or assigned to them                     -> ROLE_DENIED
"""
import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from taskflow.core.errors import ErrorCode, error_for

if TYPE_CHECKING:
    from sqlalchemy.orm import Query
    from taskflow.models.task import Task
    from taskflow.models.user import User


class Operation(str, enum.Enum):
    READ = "read"
    ORGANIZATION_UPDATE = "organization:update"
    MEMBER_ROLE_CHANGE = "member:role_change"
    MEMBER_REMOVE = "member:remove"
    TASK_CREATE = "task:create"
    TASK_UPDATE = "task:update"
    TASK_DELETE = "task:delete"
    TASK_STATUS_CHANGE = "task:status_change"
    INVITATION_LIST = "invitation:list"
    INVITATION_CREATE = "invitation:create"
    INVITATION_CANCEL = "invitation:cancel"
    INVITATION_RESEND = "invitation:resend"


ADMIN_OPERATIONS = frozenset({
    Operation.ORGANIZATION_UPDATE,
    Operation.MEMBER_ROLE_CHANGE,
    Operation.MEMBER_REMOVE,
})

MANAGER_OPERATIONS = frozenset({
    Operation.TASK_CREATE,
    Operation.TASK_UPDATE,
    Operation.TASK_DELETE,
    Operation.INVITATION_LIST,
    Operation.INVITATION_CREATE,
    Operation.INVITATION_CANCEL,
    Operation.INVITATION_RESEND,
})

ROLE_DENIED_MESSAGES = {
    "admin": "Access denied. Admin role required.",
    "manager": "Access denied. Manager or Admin role required.",
    "assignee": "Access denied. You can only update tasks assigned to you.",
}


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check."""

    allowed: bool
    reason: Optional[ErrorCode] = None
    message: Optional[str] = None

    def raise_if_denied(self) -> None:
        if not self.allowed:
            raise error_for(self.reason, self.message)


ALLOW = Decision(allowed=True)


def _deny(reason: ErrorCode, message: Optional[str] = None) -> Decision:
    return Decision(allowed=False, reason=reason, message=message)


def evaluate(
    caller: Optional["User"],
    operation: Operation,
    resource_organization_id: Optional[int] = None,
    task: Optional["Task"] = None,
    target_user_id: Optional[int] = None,
) -> Decision:
    """Evaluate whether `caller` may perform `operation` on the target resource."""
    if caller is None:
        return _deny(ErrorCode.UNAUTHENTICATED)

    if task is not None and resource_organization_id is None:
        resource_organization_id = task.organization_id

    if resource_organization_id is not None and resource_organization_id != caller.organization_id:
        return _deny(ErrorCode.CROSS_TENANT_DENIED)

    if operation == Operation.MEMBER_REMOVE and target_user_id is not None and target_user_id == caller.id:
        return _deny(ErrorCode.SELF_REMOVAL_DENIED)

    if operation in ADMIN_OPERATIONS and not caller.is_admin():
        return _deny(ErrorCode.ROLE_DENIED, ROLE_DENIED_MESSAGES["admin"])

    if operation in MANAGER_OPERATIONS and not caller.is_manager_or_admin():
        return _deny(ErrorCode.ROLE_DENIED, ROLE_DENIED_MESSAGES["manager"])

    if operation == Operation.TASK_STATUS_CHANGE and not caller.is_manager_or_admin():
        if task is not None and task.assigned_to is not None and task.assigned_to != caller.id:
            return _deny(ErrorCode.ROLE_DENIED, ROLE_DENIED_MESSAGES["assignee"])

    return ALLOW


@dataclass(frozen=True)
class Scope:
    """The caller plus the organization filter every data access must apply."""

    caller: "User"
    organization_id: int

    def apply(self, query: "Query", model: Any) -> "Query":
        """Restrict a query to rows of the caller's organization."""
        return query.filter(model.organization_id == self.organization_id)

    def authorize(
        self,
        operation: Operation,
        resource: Any = None,
        task: Optional["Task"] = None,
        target_user_id: Optional[int] = None,
    ) -> None:
        """Raise the typed error for a denied operation."""
        resource_organization_id = getattr(resource, "organization_id", None) if resource is not None else None
        evaluate(
            self.caller,
            operation,
            resource_organization_id=resource_organization_id,
            task=task,
            target_user_id=target_user_id,
        ).raise_if_denied()


def resolve_scope(caller: Optional["User"]) -> Scope:
    """Authenticate the caller and build the organization scope for the request."""
    if caller is None:
        raise error_for(ErrorCode.UNAUTHENTICATED)
    return Scope(caller=caller, organization_id=caller.organization_id)
