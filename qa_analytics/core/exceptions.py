"""Application exception classes and handlers."""

import uuid
from typing import Any

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger()


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)


# --- Authentication (401) ---


class AuthenticationError(AppException):
    """Base authentication error."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message=message, code="AUTHENTICATION_ERROR", status_code=401)


class TokenExpiredError(AppException):
    """Token has expired."""

    def __init__(self) -> None:
        super().__init__(
            message="Token has expired",
            code="TOKEN_EXPIRED",
            status_code=401,
        )


class TokenRevokedError(AppException):
    """The auth session behind the token has been revoked."""

    def __init__(self) -> None:
        super().__init__(
            message="Token has been revoked",
            code="TOKEN_REVOKED",
            status_code=401,
        )


class InvalidTokenError(AppException):
    """Token is invalid."""

    def __init__(self) -> None:
        super().__init__(
            message="Invalid token",
            code="INVALID_TOKEN",
            status_code=401,
        )


# --- Authorization (403) ---


class AuthorizationError(AppException):
    """Insufficient permissions."""

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message=message, code="AUTHORIZATION_ERROR", status_code=403)


# --- Not Found (404) ---


class NotFoundError(AppException):
    """Referenced entity does not exist."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message=message, code=code, status_code=404)


class UserNotFoundError(NotFoundError):
    """User not found."""

    def __init__(self) -> None:
        super().__init__(message="User not found", code="USER_NOT_FOUND")


class SessionNotFoundError(NotFoundError):
    """Generation session not found."""

    def __init__(self) -> None:
        super().__init__(message="Session not found", code="SESSION_NOT_FOUND")


class NothingToExportError(NotFoundError):
    """The user has no sessions of the requested kind."""

    def __init__(self) -> None:
        super().__init__(
            message="No sessions found to export", code="NOTHING_TO_EXPORT"
        )


class RunNotFoundError(NotFoundError):
    """Progress run not found."""

    def __init__(self) -> None:
        super().__init__(message="Run not found", code="RUN_NOT_FOUND")


# --- Conflict (409) ---


class SessionAlreadyExistsError(AppException):
    """Generation session with this id already exists."""

    def __init__(self) -> None:
        super().__init__(
            message="Session with this id already exists",
            code="SESSION_ALREADY_EXISTS",
            status_code=409,
        )


class SessionKindImmutableError(AppException):
    """A session's kind cannot change after creation."""

    def __init__(self) -> None:
        super().__init__(
            message="Session type cannot be changed after creation",
            code="SESSION_KIND_IMMUTABLE",
            status_code=409,
        )


# --- Validation (422) ---


class RecordValidationError(AppException):
    """A QA record violated a field constraint; nothing was written."""

    def __init__(self, message: str, code: str, field: str) -> None:
        super().__init__(
            message=message,
            code=code,
            status_code=422,
            extra={"field": field},
        )
        self.field = field


class DuplicateOrderError(RecordValidationError):
    """question_order already used within the session."""

    def __init__(self, question_order: int) -> None:
        super().__init__(
            message=f"question_order {question_order} already exists for this session",
            code="DUPLICATE_ORDER",
            field="question_order",
        )


class TokenMismatchError(RecordValidationError):
    """total_tokens differs from input_tokens + output_tokens."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            message=(
                f"total_tokens must equal input_tokens + output_tokens "
                f"(expected {expected}, got {actual})"
            ),
            code="TOKEN_MISMATCH",
            field="total_tokens",
        )


# --- Storage (503) ---


class PersistenceFailureError(AppException):
    """Storage failed after all retries."""

    def __init__(self, correlation_id: str | None = None) -> None:
        self.correlation_id = correlation_id or uuid.uuid4().hex
        super().__init__(
            message="Temporary storage failure. Please retry later.",
            code="PERSISTENCE_FAILURE",
            status_code=503,
            extra={"correlation_id": self.correlation_id},
        )


# --- Estimator (never surfaced over HTTP) ---


class EstimatorInvalidStateError(Exception):
    """Event received for a run that can no longer accept it."""

    def __init__(self, run_id: str, status: str, event: str) -> None:
        self.run_id = run_id
        self.status = status
        self.event = event
        super().__init__(f"run {run_id} is {status}; ignoring {event}")


# --- Exception Handlers ---


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Central exception handler for AppException."""
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            path=request.url.path,
            code=exc.code,
            **exc.extra,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "status": exc.status_code,
            "message": exc.message,
            "code": exc.code,
            **exc.extra,
        },
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report the first offending field of a request validation failure."""
    errors = exc.errors()
    field = ""
    message = "Validation error"
    if errors:
        first = errors[0]
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        field = ".".join(loc)
        message = f"{field}: {first.get('msg', message)}" if field else first["msg"]
    return JSONResponse(
        status_code=422,
        content={
            "status": 422,
            "message": message,
            "code": "VALIDATION_ERROR",
            "field": field,
        },
    )
