"""
OTP Challenge Manager - numeric one-time codes for email verification.

Codes are stored as an unsalted SHA-256 hex digest. The code space is small,
so protection comes from the short expiry and the route rate limit rather
than from hash cost.
"""

import hashlib
import hmac
import secrets
from datetime import UTC, datetime, timedelta

from lazla_api.config import settings
from lazla_api.models.domain import OtpChallenge


def generate_code(length: int) -> str:
    """Generate a numeric code with each digit drawn uniformly from 0-9."""
    if length <= 0:
        raise ValueError(f"OTP length must be positive: {length}")
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def hash_code(code: str) -> str:
    """Deterministic SHA-256 hex digest of a code."""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def is_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """A challenge is expired strictly after its stored expiry; no grace window."""
    current = now or datetime.now(UTC)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return current > expires_at


def compare_constant_time(presented_hash: str, stored_hash: str) -> bool:
    """
    Compare two digests in constant time.

    A length mismatch still runs a full comparison (of the stored digest
    against itself) before returning False.
    """
    presented = presented_hash.encode("utf-8")
    stored = stored_hash.encode("utf-8")
    if len(presented) != len(stored):
        hmac.compare_digest(stored, stored)
        return False
    return hmac.compare_digest(presented, stored)


class OtpManager:
    """Issues and checks OTP challenges."""

    def __init__(self, length: int | None = None, ttl: timedelta | None = None) -> None:
        self.length = length or settings.otp_length
        self.ttl = ttl or timedelta(minutes=settings.otp_ttl_minutes)

    def issue(self, now: datetime | None = None) -> OtpChallenge:
        """Create a fresh challenge; the caller stores code_hash and mails code."""
        code = generate_code(self.length)
        return OtpChallenge(
            code=code,
            code_hash=hash_code(code),
            expires_at=(now or datetime.now(UTC)) + self.ttl,
        )

    def matches(self, presented_code: str, stored_hash: str) -> bool:
        """Whether a presented code hashes to the stored digest."""
        return compare_constant_time(hash_code(presented_code.strip()), stored_hash)

    @property
    def ttl_minutes(self) -> int:
        return int(self.ttl.total_seconds() // 60)
