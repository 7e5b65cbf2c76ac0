"""Helper functions for constructing structured API error responses.

Keeping response construction in one module avoids duplicated boilerplate in
each FastAPI exception handler, and maps the pipeline's error categories onto
HTTP semantics in a single table.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from fastapi import status

from trailcatalog.errors import ErrorCategory
from trailcatalog.schemas.error import (
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)

__all__ = [
    "CATEGORY_RESPONSES",
    "build_error_response",
    "build_validation_error_response",
]

# category -> (error type, HTTP status, retry-after seconds)
CATEGORY_RESPONSES: dict[ErrorCategory, tuple[ErrorType, int, int | None]] = {
    ErrorCategory.TRANSIENT: (ErrorType.TRANSIENT_ERROR, status.HTTP_503_SERVICE_UNAVAILABLE, 5),
    ErrorCategory.PERMANENT: (ErrorType.PERMANENT_ERROR, status.HTTP_502_BAD_GATEWAY, None),
    ErrorCategory.NOT_FOUND: (ErrorType.NOT_FOUND, status.HTTP_404_NOT_FOUND, None),
    ErrorCategory.AUTHENTICATION: (
        ErrorType.AUTHENTICATION_ERROR,
        status.HTTP_401_UNAUTHORIZED,
        None,
    ),
    ErrorCategory.ROLLBACK: (ErrorType.ROLLBACK_ERROR, status.HTTP_409_CONFLICT, None),
}


def _current_timestamp() -> datetime:
    """Return a timezone-aware timestamp for error payloads.

    Splitting the call into a tiny helper makes it trivial for unit tests to
    monkeypatch the clock and assert against deterministic values.
    """

    return datetime.now(timezone.utc)


def build_validation_error_response(
    *,
    errors: Sequence[ValidationErrorDetail],
    message: str,
    detail: str,
    status_code: int,
    path: str,
    error_type: ErrorType = ErrorType.VALIDATION_ERROR,
) -> ValidationErrorResponse:
    return ValidationErrorResponse(
        error_type=error_type,
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        path=path,
        errors=list(errors),
    )


def build_error_response(
    *,
    error_type: ErrorType,
    message: str,
    detail: str | None,
    status_code: int,
    path: str,
    retry_after: int | None = None,
) -> ErrorResponse:
    return ErrorResponse(
        error_type=error_type,
        message=message,
        detail=detail,
        status_code=status_code,
        timestamp=_current_timestamp(),
        path=path,
        retry_after=retry_after,
    )
