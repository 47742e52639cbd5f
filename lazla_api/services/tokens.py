"""
Token Signer/Verifier - HS256 JWT access and refresh tokens.

Access and refresh tokens are signed with different secrets and carry a
token_use claim, so neither can be replayed as the other. Every token gets a
random jti: two refresh tokens issued within the same second still differ,
which keeps the stored refresh hash single-use.
"""

import secrets
from datetime import UTC, datetime, timedelta

import jwt

from lazla_api.config import settings
from lazla_api.exceptions import InvalidTokenError
from lazla_api.models.api import PrincipalType
from lazla_api.models.domain import TokenClaims, TokenDecodeError
from lazla_api.observability.logging import get_logger

logger = get_logger(__name__)

ACCESS_USE = "access"
REFRESH_USE = "refresh"
_REQUIRED_CLAIMS = ["sub", "type", "token_use", "iat", "exp"]


class TokenService:
    """Issues and validates signed, time-bounded tokens."""

    def __init__(
        self,
        access_secret: str | None = None,
        refresh_secret: str | None = None,
        access_ttl: timedelta | None = None,
        refresh_ttl: timedelta | None = None,
        algorithm: str | None = None,
    ) -> None:
        self.access_secret = access_secret or settings.jwt_access_secret
        self.refresh_secret = refresh_secret or settings.jwt_refresh_secret
        self.access_ttl = access_ttl or settings.access_token_ttl
        self.refresh_ttl = refresh_ttl or settings.refresh_token_ttl
        self.algorithm = algorithm or settings.jwt_algorithm

    def sign_access(
        self, subject_id: int, principal: PrincipalType, now: datetime | None = None
    ) -> str:
        """Issue an access token valid for access_ttl."""
        return self._sign(
            subject_id, principal, ACCESS_USE, self.access_secret, self.access_ttl, now
        )

    def sign_refresh(
        self, subject_id: int, principal: PrincipalType, now: datetime | None = None
    ) -> str:
        """Issue a refresh token valid for refresh_ttl."""
        return self._sign(
            subject_id, principal, REFRESH_USE, self.refresh_secret, self.refresh_ttl, now
        )

    def verify_access(self, token: str) -> TokenClaims:
        """
        Verify an access token.

        Raises:
            InvalidTokenError: Bad signature, expired, malformed or wrong token use
        """
        return self._decode(token, self.access_secret, ACCESS_USE)

    def verify_refresh(self, token: str) -> TokenClaims:
        """
        Verify a refresh token.

        Raises:
            InvalidTokenError: Bad signature, expired, malformed or wrong token use
        """
        return self._decode(token, self.refresh_secret, REFRESH_USE)

    def peek_refresh(self, token: str) -> TokenClaims | TokenDecodeError:
        """Verify a refresh token, returning the failure instead of raising it."""
        try:
            return self.verify_refresh(token)
        except InvalidTokenError as e:
            return TokenDecodeError(reason=e.reason)

    def _sign(
        self,
        subject_id: int,
        principal: PrincipalType,
        token_use: str,
        secret: str,
        ttl: timedelta,
        now: datetime | None,
    ) -> str:
        issued_at = now or datetime.now(UTC)
        payload = {
            "sub": str(subject_id),
            "type": principal.value,
            "token_use": token_use,
            "jti": secrets.token_hex(16),
            "iat": issued_at,
            "exp": issued_at + ttl,
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: str, expected_use: str) -> TokenClaims:
        if not token:
            raise InvalidTokenError("missing token")

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            logger.info("token_expired", token_use=expected_use)
            raise InvalidTokenError("expired") from None
        except jwt.InvalidTokenError as e:
            logger.warning("token_invalid", token_use=expected_use, error=str(e))
            raise InvalidTokenError("invalid") from None

        if payload["token_use"] != expected_use:
            logger.warning(
                "token_use_mismatch", expected=expected_use, actual=payload["token_use"]
            )
            raise InvalidTokenError("wrong token use")

        try:
            return TokenClaims(
                subject_id=int(payload["sub"]),
                principal=PrincipalType(payload["type"]),
                issued_at=datetime.fromtimestamp(payload["iat"], UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], UTC),
            )
        except (TypeError, ValueError) as e:
            logger.warning("token_claims_malformed", token_use=expected_use, error=str(e))
            raise InvalidTokenError("malformed claims") from None
