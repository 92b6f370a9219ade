from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    INVALID_CREDENTIALS = ErrorDefinition(
        "INVALID_CREDENTIALS",
        "Invalid credentials",
        status.HTTP_401_UNAUTHORIZED,
    )
    USER_INACTIVE = ErrorDefinition(
        "USER_INACTIVE",
        "User is inactive or suspended",
        status.HTTP_403_FORBIDDEN,
    )
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    CROSS_TENANT_ACCESS_DENIED = ErrorDefinition(
        "CROSS_TENANT_ACCESS_DENIED",
        "Cross-tenant access denied",
        status.HTTP_403_FORBIDDEN,
    )
    STORE_SCOPE_MISMATCH = ErrorDefinition(
        "STORE_SCOPE_MISMATCH",
        "Store scope mismatch",
        status.HTTP_403_FORBIDDEN,
    )
    TERMINAL_SCOPE_MISMATCH = ErrorDefinition(
        "TERMINAL_SCOPE_MISMATCH",
        "Terminal scope mismatch",
        status.HTTP_403_FORBIDDEN,
    )
    SCOPE_REQUIRED = ErrorDefinition(
        "SCOPE_REQUIRED",
        "User and tenant scope are required",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    TILL_ALREADY_OPEN = ErrorDefinition(
        "TILL_ALREADY_OPEN",
        "A till session is already open for this terminal",
        status.HTTP_409_CONFLICT,
    )
    TILL_NOT_OPEN = ErrorDefinition(
        "TILL_NOT_OPEN",
        "Till session is not open",
        status.HTTP_409_CONFLICT,
    )
    TERMINAL_INACTIVE = ErrorDefinition(
        "TERMINAL_INACTIVE",
        "Terminal is inactive",
        status.HTTP_409_CONFLICT,
    )
    TILL_NOT_FOUND = ErrorDefinition(
        "TILL_NOT_FOUND",
        "Till session not found",
        status.HTTP_404_NOT_FOUND,
    )
    TERMINAL_NOT_FOUND = ErrorDefinition(
        "TERMINAL_NOT_FOUND",
        "Terminal not found",
        status.HTTP_404_NOT_FOUND,
    )
    TERMINAL_CODE_TAKEN = ErrorDefinition(
        "TERMINAL_CODE_TAKEN",
        "Terminal code already exists for tenant",
        status.HTTP_409_CONFLICT,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)


class ConflictError(AppError):
    """A transition would break a uniqueness or ordering invariant (double open)."""

    def __init__(self, error: ErrorDefinition = ErrorCatalog.TILL_ALREADY_OPEN, details: object | None = None):
        super().__init__(error, details)


class InvalidStateError(AppError):
    """The target session (or terminal) is in the wrong state for the operation."""

    def __init__(self, error: ErrorDefinition = ErrorCatalog.TILL_NOT_OPEN, details: object | None = None):
        super().__init__(error, details)


class ValidationError(AppError):
    def __init__(self, error: ErrorDefinition = ErrorCatalog.VALIDATION_ERROR, details: object | None = None):
        super().__init__(error, details)


class NotFoundError(AppError):
    def __init__(self, error: ErrorDefinition = ErrorCatalog.TILL_NOT_FOUND, details: object | None = None):
        super().__init__(error, details)
