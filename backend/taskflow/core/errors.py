"""
Typed business errors.

Services raise these; the application installs a handler that renders them as
`{"detail": message, "code": ERROR_CODE}` with the mapped HTTP status.
"""
import enum
from fastapi import status


class ErrorCode(str, enum.Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    CROSS_TENANT_DENIED = "CROSS_TENANT_DENIED"
    ROLE_DENIED = "ROLE_DENIED"
    SELF_REMOVAL_DENIED = "SELF_REMOVAL_DENIED"
    NOT_FOUND = "NOT_FOUND"
    DUPLICATE_INVITATION = "DUPLICATE_INVITATION"
    INVALID_OR_EXPIRED_INVITATION = "INVALID_OR_EXPIRED_INVITATION"
    EMAIL_MISMATCH = "EMAIL_MISMATCH"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_CREDENTIAL = "DUPLICATE_CREDENTIAL"
    STORE_ERROR = "STORE_ERROR"


class TaskflowError(Exception):
    """Base exception for all business-rule violations."""

    code: ErrorCode = ErrorCode.STORE_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code.value}


class UnauthenticatedError(TaskflowError):
    code = ErrorCode.UNAUTHENTICATED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authenticated"


class CrossTenantDeniedError(TaskflowError):
    code = ErrorCode.CROSS_TENANT_DENIED
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied. You can only access resources within your organization."


class RoleDeniedError(TaskflowError):
    code = ErrorCode.ROLE_DENIED
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied for your role"


class SelfRemovalDeniedError(TaskflowError):
    code = ErrorCode.SELF_REMOVAL_DENIED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Cannot remove yourself from the organization"


class NotFoundError(TaskflowError):
    code = ErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class DuplicateInvitationError(TaskflowError):
    code = ErrorCode.DUPLICATE_INVITATION
    status_code = status.HTTP_409_CONFLICT
    default_message = "An invitation has already been sent to this email"


class InvalidInvitationError(TaskflowError):
    code = ErrorCode.INVALID_OR_EXPIRED_INVITATION
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired invitation token"


class EmailMismatchError(TaskflowError):
    code = ErrorCode.EMAIL_MISMATCH
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invitation was sent to a different email address"


class ValidationError(TaskflowError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class DuplicateCredentialError(TaskflowError):
    code = ErrorCode.DUPLICATE_CREDENTIAL
    status_code = status.HTTP_409_CONFLICT
    default_message = "User already exists"


class StoreError(TaskflowError):
    code = ErrorCode.STORE_ERROR
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


_ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        UnauthenticatedError,
        CrossTenantDeniedError,
        RoleDeniedError,
        SelfRemovalDeniedError,
        NotFoundError,
        DuplicateInvitationError,
        InvalidInvitationError,
        EmailMismatchError,
        ValidationError,
        DuplicateCredentialError,
        StoreError,
    )
}


def error_for(code: ErrorCode, message: str | None = None) -> TaskflowError:
    """Build the exception instance matching an error code."""
    return _ERRORS_BY_CODE[code](message)
