"""Translation of domain errors into HTTP responses with a stable ``code``."""
from fastapi import HTTPException, status

from listing_lifecycle.application.interfaces.payment_rail import PaymentRailError
from listing_lifecycle.domain.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    ListingLifecycleError,
    NotFoundError,
    WindowExpiredError,
)

_STATUS_BY_ERROR: list[tuple[type[ListingLifecycleError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (WindowExpiredError, status.HTTP_410_GONE),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_422_UNPROCESSABLE_ENTITY),
]


def http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, PaymentRailError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "payment_rail_unavailable", "message": str(exc)},
        )
    if isinstance(exc, ValueError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "invalid_request", "message": str(exc)},
        )

    code = getattr(exc, "code", "lifecycle_error")
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail={"code": code, "message": str(exc)})
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST, detail={"code": code, "message": str(exc)}
    )


# Everything a route handler translates via http_error()
HANDLED_ERRORS = (ListingLifecycleError, PaymentRailError, ValueError)
