"""
FastAPI Dependencies - bearer authentication, service wiring and rate limits.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from lazla_api.db.session import get_read_db, get_write_db
from lazla_api.exceptions import InvalidTokenError, RateLimitExceededError
from lazla_api.models.api import PrincipalType
from lazla_api.observability.logging import get_logger
from lazla_api.observability.metrics import metrics
from lazla_api.services.accounts import AccountRepository
from lazla_api.services.auth import AuthService
from lazla_api.services.payments import PaymentService
from lazla_api.services.rate_limit import RateLimiter, get_auth_rate_limiter
from lazla_api.services.refresh_store import RefreshTokenStore
from lazla_api.services.tokens import TokenService

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

_token_service: TokenService | None = None


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    """Subject of a verified access token."""

    account_id: int
    principal: PrincipalType


def get_token_service() -> TokenService:
    """Get the process-wide token service."""
    global _token_service
    if _token_service is None:
        _token_service = TokenService()
    return _token_service


def _unauthorized(detail: str = "unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_principal(
    principal: PrincipalType,
) -> Callable[..., Awaitable[AuthenticatedPrincipal]]:
    """
    Create a dependency that accepts only access tokens of one principal type.

    Usage:
        @router.get("/me")
        async def me(
            caller: AuthenticatedPrincipal = Depends(require_principal(PrincipalType.STAFF))
        ):
            ...
    """

    async def principal_checker(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
        tokens: TokenService = Depends(get_token_service),
    ) -> AuthenticatedPrincipal:
        if credentials is None or not credentials.credentials:
            raise _unauthorized()

        try:
            claims = tokens.verify_access(credentials.credentials)
        except InvalidTokenError as e:
            logger.info("access_token_rejected", reason=e.reason)
            raise _unauthorized() from e

        if claims.principal != principal:
            logger.warning(
                "access_token_wrong_principal",
                expected=principal.value,
                actual=claims.principal.value,
                account_id=claims.subject_id,
            )
            raise _unauthorized()

        return AuthenticatedPrincipal(account_id=claims.subject_id, principal=claims.principal)

    return principal_checker


get_current_customer = require_principal(PrincipalType.CUSTOMER)
get_current_staff = require_principal(PrincipalType.STAFF)


# ============================================================================
# Service Wiring
# ============================================================================


def _auth_service(
    db: AsyncSession, principal: PrincipalType, tokens: TokenService
) -> AuthService:
    return AuthService(
        accounts=AccountRepository(db, principal),
        refresh_store=RefreshTokenStore(db, principal),
        principal=principal,
        tokens=tokens,
    )


async def get_customer_auth_service(
    db: AsyncSession = Depends(get_write_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return _auth_service(db, PrincipalType.CUSTOMER, tokens)


async def get_staff_auth_service(
    db: AsyncSession = Depends(get_write_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return _auth_service(db, PrincipalType.STAFF, tokens)


async def get_payment_service(db: AsyncSession = Depends(get_write_db)) -> PaymentService:
    """Payment service on the primary, for writes."""
    return PaymentService(db)


async def get_payment_read_service(db: AsyncSession = Depends(get_read_db)) -> PaymentService:
    """Payment service on the replica, for listings."""
    return PaymentService(db)


# ============================================================================
# Rate Limiting
# ============================================================================


def client_ip(request: Request) -> str:
    """Peer address as seen by the ASGI server (proxy headers are the server's job)."""
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def enforce_auth_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_auth_rate_limiter),
) -> None:
    """
    Per-endpoint, per-IP budget for the unauthenticated auth endpoints.

    Raises:
        HTTPException 429 with Retry-After when the budget is spent
    """
    try:
        await limiter.check(f"{request.url.path}:{client_ip(request)}")
    except RateLimitExceededError as e:
        metrics.rate_limited_total.labels(endpoint=request.url.path).inc()
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="too many requests",
            headers={"Retry-After": str(e.retry_after_seconds)},
        ) from e
