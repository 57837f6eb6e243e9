from fastapi import HTTPException, status

from app.utils.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PaymentCalendarError,
    PaymentValidationError,
)

_STATUS_CODES = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    PaymentValidationError: status.HTTP_400_BAD_REQUEST,
}


def http_error(exc: PaymentCalendarError) -> HTTPException:
    """Translate a domain error into the HTTP error returned to the client."""
    for error_type, status_code in _STATUS_CODES.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
