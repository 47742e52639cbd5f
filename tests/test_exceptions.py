"""
Tests for Exception Classes and their HTTP translation.
"""

import pytest
from fastapi import HTTPException

from lazla_api.api.errors import to_http_exception
from lazla_api.exceptions import (
    ConflictError,
    DependencyFailureError,
    InvalidInputError,
    InvalidTokenError,
    LazlaError,
    NotFoundError,
    OtpExpiredError,
    OtpInvalidError,
    OtpNotFoundError,
    RateLimitExceededError,
    UnauthorizedError,
    WriteVerificationError,
)


class TestExceptionHierarchy:
    """All domain errors share one base."""

    @pytest.mark.parametrize(
        "exc",
        [
            InvalidInputError("x"),
            ConflictError("email", "email already registered"),
            UnauthorizedError(),
            InvalidTokenError("expired"),
            NotFoundError("purchase"),
            OtpNotFoundError("a@b.c"),
            OtpInvalidError(),
            OtpExpiredError(),
            DependencyFailureError("email", "failed to send email"),
            WriteVerificationError("row missing"),
            RateLimitExceededError("ip", 30),
        ],
    )
    def test_is_lazla_error(self, exc: Exception):
        assert isinstance(exc, LazlaError)

    def test_invalid_token_is_unauthorized(self):
        """Token failures surface as the generic unauthorized message."""
        exc = InvalidTokenError("wrong token use")
        assert isinstance(exc, UnauthorizedError)
        assert exc.reason == "wrong token use"
        assert exc.message == "invalid or expired token"

    def test_unauthorized_default_message(self):
        assert UnauthorizedError().message == "invalid credentials"

    def test_not_found_default_message(self):
        assert NotFoundError("purchase").message == "purchase not found"
        assert NotFoundError("user", "user not found").message == "user not found"

    def test_otp_not_found_is_not_found(self):
        exc = OtpNotFoundError("a@b.c")
        assert isinstance(exc, NotFoundError)
        assert exc.email == "a@b.c"

    def test_rate_limit_carries_retry_after(self):
        exc = RateLimitExceededError("/login:1.2.3.4", 42)
        assert exc.retry_after_seconds == 42
        assert str(exc) == "too many requests"


class TestToHttpException:
    """Tests for domain error to HTTP mapping."""

    @pytest.mark.parametrize(
        "exc,status_code,detail",
        [
            (InvalidInputError("password is required"), 400, "password is required"),
            (ConflictError("email", "email already registered"), 409, "email already registered"),
            (UnauthorizedError(), 401, "invalid credentials"),
            (InvalidTokenError("expired"), 401, "invalid or expired token"),
            (NotFoundError("user", "user not found"), 404, "user not found"),
            (OtpNotFoundError("a@b.c"), 404, "no otp on file for this email"),
            (DependencyFailureError("email", "failed to send email"), 500, "failed to send email"),
            (WriteVerificationError("x"), 500, "database integrity error"),
            (LazlaError("boom"), 500, "internal server error"),
        ],
    )
    def test_mapping(self, exc: LazlaError, status_code: int, detail: str):
        http_exc = to_http_exception(exc)
        assert isinstance(http_exc, HTTPException)
        assert http_exc.status_code == status_code
        assert http_exc.detail == detail

    def test_otp_invalid_flag(self):
        """Invalid OTP carries invalid=true so clients can branch on it."""
        http_exc = to_http_exception(OtpInvalidError())
        assert http_exc.status_code == 400
        assert http_exc.detail == {"message": "invalid otp", "invalid": True}

    def test_otp_expired_flag(self):
        http_exc = to_http_exception(OtpExpiredError())
        assert http_exc.status_code == 400
        assert http_exc.detail == {"message": "otp expired", "expired": True}
