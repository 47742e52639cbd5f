"""
Domain Models - Internal business logic models using dataclasses.

Services exchange these instead of ORM rows so that tests can drive them
with in-memory stores.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from lazla_api.models.api import DeliveryEventType, PrincipalType


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of an access or refresh token."""

    subject_id: int
    principal: PrincipalType
    issued_at: datetime
    expires_at: datetime

    def __post_init__(self) -> None:
        """Validate claim constraints."""
        if self.subject_id <= 0:
            raise ValueError(f"Invalid subject id: {self.subject_id}")
        if self.expires_at <= self.issued_at:
            raise ValueError("Token must expire after it was issued")


@dataclass(frozen=True)
class TokenDecodeError:
    """Why a presented token could not be decoded."""

    reason: str


@dataclass(frozen=True)
class AccountData:
    """Account row snapshot (customer or staff)."""

    account_id: int
    principal: PrincipalType
    username: str
    email: str | None
    hashed_password: str
    refresh_token_hash: str | None
    created_at: datetime
    email_verified: bool = False
    otp_hash: str | None = None
    otp_expires_at: datetime | None = None
    role: str | None = None


@dataclass(frozen=True)
class NewAccount:
    """Customer account before persistence."""

    username: str
    email: str
    hashed_password: str
    otp_hash: str
    otp_expires_at: datetime

    def __post_init__(self) -> None:
        """Normalized identifiers only."""
        if self.email != self.email.strip().lower():
            raise ValueError(f"Email must be normalized: {self.email!r}")
        if self.username != self.username.strip().lower():
            raise ValueError(f"Username must be normalized: {self.username!r}")


@dataclass(frozen=True)
class OtpChallenge:
    """A freshly generated OTP: the code goes to the mailer, the rest to storage."""

    code: str
    code_hash: str
    expires_at: datetime


@dataclass(frozen=True)
class IssuedSession:
    """Result of signup, login and refresh: an account plus a fresh token pair."""

    account: AccountData
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class DeliveryAttemptIntent:
    """Audit-only delivery event before persistence."""

    purchase_id: int
    event_type: DeliveryEventType
    event_status: str | None
    driver_id: int | None
    note: str | None
    photo_url: str | None
    collected_amount: Decimal | None

    def __post_init__(self) -> None:
        """Settlement events have their own transactional path."""
        if self.event_type == DeliveryEventType.COD_COLLECTED:
            raise ValueError("cod_collected events must go through COD settlement")


@dataclass(frozen=True)
class CodCollectionIntent:
    """COD settlement request before persistence."""

    purchase_id: int
    collected_amount: Decimal
    driver_id: int | None
    note: str | None
    txn_id: str | None
    performed_by: int | None

    def __post_init__(self) -> None:
        """Validate settlement constraints."""
        if self.collected_amount < 0:
            raise ValueError(f"Collected amount cannot be negative: {self.collected_amount}")


@dataclass(frozen=True)
class PaymentEventData:
    """Payment event as stored."""

    event_id: int
    purchase_id: int
    event_type: str
    event_status: str | None
    payment_method: str | None
    txn_id: str | None
    metadata: dict[str, Any] | None
    created_at: datetime
