"""
Translation of domain exceptions into HTTP errors.
"""

from fastapi import HTTPException, status

from milestone_escrow.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BusinessLogicError,
    EscrowOperationFailed,
    MilestoneEscrowError,
    NotFoundError,
    ValidationError,
)

_STATUS_CODES: list[tuple[type[MilestoneEscrowError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (BusinessLogicError, status.HTTP_409_CONFLICT),
    (EscrowOperationFailed, status.HTTP_502_BAD_GATEWAY),
]


def to_http_exception(exc: MilestoneEscrowError) -> HTTPException:
    """Map a domain error to an HTTPException with a machine-readable code."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            status_code = code
            break
    return HTTPException(
        status_code=status_code,
        detail={
            "code": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )
