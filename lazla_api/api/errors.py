"""
Domain error to HTTP translation shared by the route modules.
"""

from fastapi import HTTPException, status

from lazla_api.exceptions import (
    ConflictError,
    DependencyFailureError,
    InvalidInputError,
    LazlaError,
    NotFoundError,
    OtpExpiredError,
    OtpInvalidError,
    UnauthorizedError,
    WriteVerificationError,
)


def to_http_exception(exc: LazlaError) -> HTTPException:
    """Map a domain error to the response the client sees."""
    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    if isinstance(exc, UnauthorizedError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message)
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, OtpInvalidError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "invalid otp", "invalid": True},
        )
    if isinstance(exc, OtpExpiredError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "otp expired", "expired": True},
        )
    if isinstance(exc, DependencyFailureError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message
        )
    if isinstance(exc, WriteVerificationError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="database integrity error"
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal server error"
    )
