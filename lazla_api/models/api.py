"""
API Models - Pydantic models for request/response validation.

Wire format is camelCase (accessToken, collectedAmount); Python attributes
stay snake_case.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class PrincipalType(str, Enum):
    """Which account table a token subject lives in."""

    CUSTOMER = "customer"
    STAFF = "staff"


class StaffRole(str, Enum):
    """Staff role enumeration."""

    ADMIN = "admin"
    DRIVER = "driver"


class PaymentStatus(str, Enum):
    """Purchase payment status enumeration."""

    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class DeliveryEventType(str, Enum):
    """Payment event type enumeration."""

    DELIVERY_ATTEMPT = "delivery_attempt"
    DELIVERY_FAILED = "delivery_failed"
    DELIVERY_SUCCESS = "delivery_success"
    COD_COLLECTED = "cod_collected"
    COD_PARTIAL = "cod_partial"
    DELIVERY_NOTE = "delivery_note"


class CamelModel(BaseModel):
    """Base model accepting and emitting camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Auth Request Models
# ============================================================================


class SignupRequest(CamelModel):
    """POST /signup request body."""

    username: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Reject values that cannot be an address."""
        if "@" not in v.strip():
            raise ValueError("email must contain '@'")
        return v


class LoginRequest(CamelModel):
    """POST /login request body."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


class VerifyOtpRequest(CamelModel):
    """POST /verify-otp request body."""

    email: str = Field(..., min_length=1, max_length=255)
    otp: str = Field(..., min_length=1, max_length=16)


class ResendOtpRequest(CamelModel):
    """POST /resend-otp request body."""

    email: str = Field(..., min_length=1, max_length=255)


class RefreshTokenRequest(CamelModel):
    """Body form of /refresh and /logout; the cookie takes precedence."""

    refresh_token: str | None = None


class ChangePasswordRequest(CamelModel):
    """POST /change-password request body."""

    old_password: str = Field(..., min_length=1, max_length=256)
    new_password: str = Field(..., min_length=1, max_length=256)


# ============================================================================
# Auth Response Models
# ============================================================================


class UserResponse(CamelModel):
    """Public account profile - never includes password or token fields."""

    id: int
    username: str
    email: str | None
    created_at: datetime | None = None


class AuthResponse(CamelModel):
    """Signup/login response; the refresh token travels in a cookie."""

    user: UserResponse
    access_token: str


class AccessTokenResponse(CamelModel):
    """Refresh response."""

    access_token: str


class MeResponse(CamelModel):
    """GET /me response."""

    user: UserResponse


class VerifyOtpResponse(CamelModel):
    """POST /verify-otp success response."""

    message: str = "user email verified"
    verified: bool = True


class MessageResponse(CamelModel):
    """Generic acknowledgement."""

    message: str


# ============================================================================
# Delivery / Payment Models
# ============================================================================


class RecordDeliveryAttemptRequest(CamelModel):
    """POST /delivery/{purchase_id}/attempt request body."""

    driver_id: int | None = None
    event_type: DeliveryEventType = DeliveryEventType.DELIVERY_ATTEMPT
    event_status: str | None = Field(None, max_length=50)
    collected_amount: Decimal | None = Field(None, ge=0)
    note: str | None = Field(None, max_length=2000)
    photo_url: str | None = Field(None, max_length=2048)

    @field_validator("event_type")
    @classmethod
    def validate_event_type(cls, v: DeliveryEventType) -> DeliveryEventType:
        """COD settlement goes through /collect so the purchase is updated with it."""
        if v == DeliveryEventType.COD_COLLECTED:
            raise ValueError("cod_collected events must be recorded via /collect")
        return v


class ConfirmCodRequest(CamelModel):
    """POST /delivery/{purchase_id}/collect request body."""

    collected_amount: Decimal = Field(..., ge=0)
    driver_id: int | None = None
    note: str | None = Field(None, max_length=2000)
    txn_id: str | None = Field(None, min_length=1, max_length=255)


class PaymentEventResponse(CamelModel):
    """Single payment event row."""

    id: int
    purchase_id: int
    event_type: DeliveryEventType
    event_status: str | None
    payment_method: str | None
    txn_id: str | None
    metadata: dict[str, Any] | None
    created_at: datetime


class CollectResponse(CamelModel):
    """POST /delivery/{purchase_id}/collect response."""

    event: PaymentEventResponse


class PaymentEventPage(CamelModel):
    """GET /delivery/admin response."""

    items: list[PaymentEventResponse]
    page: int
    limit: int
    total: int


# ============================================================================
# Health
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    database: str
    version: str
