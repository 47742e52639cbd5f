"""
Authentication Service - signup, login, email verification and sessions.

Session model: each account has at most one live refresh token, represented
by its stored digest. Every successful refresh rotates it, so a refresh token
is single-use. Login is allowed before the email is verified; the OTP only
gates the email_verified flag.

Customer and staff accounts share this service; a service instance is bound
to one principal type and rejects tokens issued for the other.
"""

import asyncio

from lazla_api.exceptions import (
    ConflictError,
    InvalidInputError,
    InvalidTokenError,
    NotFoundError,
    OtpExpiredError,
    OtpInvalidError,
    OtpNotFoundError,
    UnauthorizedError,
)
from lazla_api.models.api import PrincipalType
from lazla_api.models.domain import AccountData, IssuedSession, NewAccount, TokenDecodeError
from lazla_api.observability.logging import get_logger, token_fingerprint
from lazla_api.observability.metrics import metrics
from lazla_api.services.accounts import AccountRepository
from lazla_api.services.credentials import CredentialHasher
from lazla_api.services.mailer import EmailSender, get_email_sender, send_otp_email
from lazla_api.services.otp import OtpManager, compare_constant_time, is_expired
from lazla_api.services.refresh_store import RefreshTokenStore, hash_token
from lazla_api.services.tokens import TokenService

logger = get_logger(__name__)

INVALID_CREDENTIALS = "invalid credentials"
INVALID_REFRESH_TOKEN = "invalid refresh token"


def normalize_identifier(value: str) -> str:
    """Trim and lowercase an email or username."""
    return value.strip().lower()


class AuthService:
    """
    Orchestrates the credential hasher, token service, OTP manager and stores.

    All methods that write commit before returning and roll back on failure.
    """

    def __init__(
        self,
        accounts: AccountRepository,
        refresh_store: RefreshTokenStore,
        principal: PrincipalType,
        hasher: CredentialHasher | None = None,
        tokens: TokenService | None = None,
        otp: OtpManager | None = None,
        email_sender: EmailSender | None = None,
    ) -> None:
        self.accounts = accounts
        self.refresh_store = refresh_store
        self.principal = principal
        self.hasher = hasher or CredentialHasher()
        self.tokens = tokens or TokenService()
        self.otp = otp or OtpManager()
        self.email_sender = email_sender or get_email_sender()

    # ========================================================================
    # Signup / Login
    # ========================================================================

    async def signup(self, username: str, email: str, password: str) -> IssuedSession:
        """
        Register a customer, email an OTP and open a session.

        The OTP email is sent before the row is written: if delivery fails no
        account is created.

        Raises:
            InvalidInputError: Missing username, email or password
            ConflictError: Email already verified, email taken or username taken
            DependencyFailureError: OTP email could not be sent
        """
        if self.principal != PrincipalType.CUSTOMER:
            raise InvalidInputError("signup is only available to customers")

        username = normalize_identifier(username)
        email = normalize_identifier(email)
        if not username or not email or not password:
            raise InvalidInputError("username, email and password are required")

        if await self.accounts.verified_email_exists(email):
            metrics.record_auth("signup", self.principal.value, "conflict")
            raise ConflictError("email", "email already registered")
        if await self.accounts.get_by_email(email) is not None:
            metrics.record_auth("signup", self.principal.value, "conflict")
            raise ConflictError("email", "email already registered")
        if await self.accounts.get_by_username(username) is not None:
            metrics.record_auth("signup", self.principal.value, "conflict")
            raise ConflictError("username", "username already registered")

        hashed_password = await asyncio.to_thread(self.hasher.hash, password)
        challenge = self.otp.issue()
        await self._send_otp(email, challenge.code)

        try:
            account = await self.accounts.create_customer(
                NewAccount(
                    username=username,
                    email=email,
                    hashed_password=hashed_password,
                    otp_hash=challenge.code_hash,
                    otp_expires_at=challenge.expires_at,
                )
            )
            issued = await self._open_session(account)
            await self.accounts.commit()
        except ConflictError:
            metrics.record_auth("signup", self.principal.value, "conflict")
            raise
        except Exception:
            await self.accounts.rollback()
            raise

        metrics.record_auth("signup", self.principal.value, "success")
        logger.info("signup_succeeded", account_id=account.account_id, email=email)
        return issued

    async def login(self, email: str, password: str) -> IssuedSession:
        """
        Authenticate by email and password and open a new session.

        Unknown email and wrong password raise the same error.

        Raises:
            UnauthorizedError: Invalid credentials
        """
        email = normalize_identifier(email)
        account = await self.accounts.get_by_email(email) if email else None

        if account is None or not await asyncio.to_thread(
            self.hasher.verify, password, account.hashed_password
        ):
            metrics.record_auth("login", self.principal.value, "unauthorized")
            logger.info("login_failed", principal=self.principal.value, email=email)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        try:
            issued = await self._open_session(account)
            await self.accounts.commit()
        except Exception:
            await self.accounts.rollback()
            raise

        metrics.record_auth("login", self.principal.value, "success")
        logger.info(
            "login_succeeded", principal=self.principal.value, account_id=account.account_id
        )
        return issued

    # ========================================================================
    # Email Verification
    # ========================================================================

    async def verify_otp(self, email: str, code: str) -> None:
        """
        Check a presented OTP and mark the email verified.

        The hash comparison happens before the expiry check. An expired
        challenge is left in place so the user can request a resend.

        Raises:
            NotFoundError: Unknown email
            OtpNotFoundError: No challenge on record
            OtpInvalidError: Code does not match
            OtpExpiredError: Code matches but has expired
        """
        email = normalize_identifier(email)
        account = await self.accounts.get_by_email(email)
        if account is None:
            raise NotFoundError("user", "user not found")
        if account.otp_expires_at is None or account.otp_hash is None:
            raise OtpNotFoundError(email)

        if not self.otp.matches(code, account.otp_hash):
            metrics.record_auth("verify_otp", self.principal.value, "invalid")
            logger.info("otp_invalid", account_id=account.account_id)
            raise OtpInvalidError()

        if is_expired(account.otp_expires_at):
            metrics.record_auth("verify_otp", self.principal.value, "expired")
            logger.info("otp_expired", account_id=account.account_id)
            raise OtpExpiredError()

        try:
            await self.accounts.mark_email_verified(account.account_id)
            await self.accounts.commit()
        except Exception:
            await self.accounts.rollback()
            raise

        metrics.record_auth("verify_otp", self.principal.value, "success")
        logger.info("email_verified", account_id=account.account_id)

    async def resend_otp(self, email: str) -> bool:
        """
        Issue and email a fresh OTP, replacing any pending one.

        Returns:
            True if a code was sent; False for an unknown or already verified
            email (nothing sent)

        Raises:
            DependencyFailureError: OTP email could not be sent
        """
        email = normalize_identifier(email)
        account = await self.accounts.get_by_email(email)
        if account is None:
            logger.info("otp_resend_skipped_unknown_email")
            return False
        if account.email_verified:
            logger.info("otp_resend_skipped_verified", account_id=account.account_id)
            return False

        challenge = self.otp.issue()
        await self._send_otp(email, challenge.code)

        try:
            await self.accounts.set_otp(
                account.account_id, challenge.code_hash, challenge.expires_at
            )
            await self.accounts.commit()
        except Exception:
            await self.accounts.rollback()
            raise

        logger.info("otp_resent", account_id=account.account_id)
        return True

    # ========================================================================
    # Session Lifecycle
    # ========================================================================

    async def refresh(self, presented_token: str) -> IssuedSession:
        """
        Exchange a refresh token for a new access/refresh pair.

        The stored digest is swapped atomically; when two requests present the
        same token, the one that loses the swap fails.

        Raises:
            UnauthorizedError: Invalid, expired, foreign or already-rotated token
        """
        try:
            claims = self.tokens.verify_refresh(presented_token)
        except InvalidTokenError as e:
            metrics.record_auth("refresh", self.principal.value, "invalid_token")
            logger.info("refresh_rejected", reason=e.reason)
            raise UnauthorizedError(INVALID_REFRESH_TOKEN) from e

        if claims.principal != self.principal:
            metrics.record_auth("refresh", self.principal.value, "wrong_principal")
            logger.warning("refresh_rejected", reason="principal mismatch")
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        account = await self.refresh_store.get_account_by_id(claims.subject_id)
        if account is None or account.refresh_token_hash is None:
            metrics.record_auth("refresh", self.principal.value, "no_session")
            logger.info(
                "refresh_rejected", reason="no live session", account_id=claims.subject_id
            )
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        presented_hash = hash_token(presented_token)
        if not compare_constant_time(presented_hash, account.refresh_token_hash):
            metrics.record_auth("refresh", self.principal.value, "mismatch")
            logger.warning(
                "refresh_token_reuse_detected",
                account_id=account.account_id,
                token=token_fingerprint(presented_hash),
            )
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)

        access_token, refresh_token = self._sign_pair(account.account_id)
        new_hash = hash_token(refresh_token)
        try:
            rotated = await self.refresh_store.rotate_refresh_hash(
                account.account_id, presented_hash, new_hash
            )
            if not rotated:
                await self.refresh_store.rollback()
                metrics.record_auth("refresh", self.principal.value, "lost_race")
                logger.warning("refresh_rotation_lost", account_id=account.account_id)
                raise UnauthorizedError(INVALID_REFRESH_TOKEN)
            await self.refresh_store.commit()
        except UnauthorizedError:
            raise
        except Exception:
            await self.refresh_store.rollback()
            raise

        metrics.record_auth("refresh", self.principal.value, "success")
        logger.info(
            "refresh_rotated",
            principal=self.principal.value,
            account_id=account.account_id,
            token=token_fingerprint(new_hash),
        )
        return IssuedSession(
            account=account, access_token=access_token, refresh_token=refresh_token
        )

    async def logout(self, presented_token: str) -> None:
        """
        Best-effort logout: clear the stored refresh digest of the token's account.

        Undecodable or foreign tokens are a no-op; the caller reports success
        either way.
        """
        decoded = self.tokens.peek_refresh(presented_token)
        if isinstance(decoded, TokenDecodeError):
            logger.info("logout_token_ignored", reason=decoded.reason)
            return
        if decoded.principal != self.principal:
            logger.info("logout_token_ignored", reason="principal mismatch")
            return

        try:
            await self.refresh_store.clear_refresh_hash(decoded.subject_id)
            await self.refresh_store.commit()
        except Exception:
            await self.refresh_store.rollback()
            raise

        metrics.record_auth("logout", self.principal.value, "success")
        logger.info(
            "logout_succeeded", principal=self.principal.value, account_id=decoded.subject_id
        )

    async def change_password(
        self, account_id: int, old_password: str, new_password: str
    ) -> None:
        """
        Replace the password of an authenticated account and end its session.

        Raises:
            InvalidInputError: Missing or oversized new password
            NotFoundError: Account no longer exists
            UnauthorizedError: Old password does not match
        """
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("user", "user not found")

        if not await asyncio.to_thread(self.hasher.verify, old_password, account.hashed_password):
            metrics.record_auth("change_password", self.principal.value, "unauthorized")
            logger.info("change_password_rejected", account_id=account_id)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        new_hash = await asyncio.to_thread(self.hasher.hash, new_password)
        try:
            await self.accounts.replace_password(account_id, new_hash)
            await self.accounts.commit()
        except Exception:
            await self.accounts.rollback()
            raise

        metrics.record_auth("change_password", self.principal.value, "success")
        logger.info("password_changed", principal=self.principal.value, account_id=account_id)

    async def get_profile(self, account_id: int) -> AccountData:
        """
        Raises:
            NotFoundError: Account no longer exists
        """
        account = await self.accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("user", "user not found")
        return account

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    def _sign_pair(self, account_id: int) -> tuple[str, str]:
        return (
            self.tokens.sign_access(account_id, self.principal),
            self.tokens.sign_refresh(account_id, self.principal),
        )

    async def _open_session(self, account: AccountData) -> IssuedSession:
        """Issue a token pair and make its refresh token the live one (no commit)."""
        access_token, refresh_token = self._sign_pair(account.account_id)
        await self.refresh_store.save_refresh_hash(account.account_id, hash_token(refresh_token))
        return IssuedSession(
            account=account, access_token=access_token, refresh_token=refresh_token
        )

    async def _send_otp(self, email: str, code: str) -> None:
        try:
            await send_otp_email(self.email_sender, email, code, self.otp.ttl_minutes)
        except Exception:
            metrics.record_otp_email(success=False)
            raise
        metrics.record_otp_email(success=True)
