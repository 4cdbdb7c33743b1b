"""Translate service exceptions into HTTP errors."""

from fastapi import HTTPException, status

from ..services import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
    TaskPoolError,
    UnauthenticatedError,
)

_STATUS_CODES: list[tuple[type[TaskPoolError], int]] = [
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
]


def to_http_exception(error: TaskPoolError) -> HTTPException:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(error),
    )
