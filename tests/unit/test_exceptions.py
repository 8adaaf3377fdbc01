"""Tests for custom exception classes and handlers."""

import json

from fastapi import Request

from qa_analytics.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    DuplicateOrderError,
    PersistenceFailureError,
    RunNotFoundError,
    SessionAlreadyExistsError,
    SessionKindImmutableError,
    SessionNotFoundError,
    TokenMismatchError,
    TokenRevokedError,
    UserNotFoundError,
    app_exception_handler,
)


def _request() -> Request:
    return Request({"type": "http", "method": "POST", "path": "/api/v1/x", "headers": []})


class TestExceptions:
    """Verify exception status codes and codes."""

    def test_app_exception_defaults(self) -> None:
        exc = AppException(message="err", code="ERR")
        assert exc.status_code == 400
        assert exc.extra == {}

    def test_auth_errors(self) -> None:
        assert AuthenticationError().status_code == 401
        assert TokenRevokedError().code == "TOKEN_REVOKED"
        assert AuthorizationError().status_code == 403

    def test_not_found_family(self) -> None:
        for exc in (UserNotFoundError(), SessionNotFoundError(), RunNotFoundError()):
            assert exc.status_code == 404

    def test_conflicts(self) -> None:
        assert SessionAlreadyExistsError().status_code == 409
        assert SessionKindImmutableError().code == "SESSION_KIND_IMMUTABLE"

    def test_validation_errors_name_field(self) -> None:
        duplicate = DuplicateOrderError(4)
        assert duplicate.status_code == 422
        assert duplicate.extra == {"field": "question_order"}
        mismatch = TokenMismatchError(expected=15, actual=16)
        assert mismatch.extra == {"field": "total_tokens"}
        assert "expected 15" in mismatch.message

    def test_persistence_failure_generates_correlation_id(self) -> None:
        first = PersistenceFailureError()
        second = PersistenceFailureError()
        assert first.status_code == 503
        assert first.correlation_id != second.correlation_id
        assert PersistenceFailureError("abc").extra == {"correlation_id": "abc"}


class TestAppExceptionHandler:
    async def test_flat_error_body(self) -> None:
        response = await app_exception_handler(_request(), DuplicateOrderError(2))
        body = json.loads(response.body)
        assert response.status_code == 422
        assert body == {
            "status": 422,
            "message": "question_order 2 already exists for this session",
            "code": "DUPLICATE_ORDER",
            "field": "question_order",
        }

    async def test_persistence_failure_body(self) -> None:
        response = await app_exception_handler(
            _request(), PersistenceFailureError("corr-1")
        )
        body = json.loads(response.body)
        assert response.status_code == 503
        assert body["correlation_id"] == "corr-1"
        assert body["code"] == "PERSISTENCE_FAILURE"
