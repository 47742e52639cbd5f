"""
Auth Routes - customer and staff session endpoints.

Customers: /api/auth/customer (signup, OTP verification and the session
endpoints). Staff: /api/auth/staff (session endpoints only; staff accounts
are provisioned by an operator). The refresh token is returned only in an
httpOnly cookie scoped to the router's /refresh path.
"""

from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status

from lazla_api.api.dependencies import (
    AuthenticatedPrincipal,
    enforce_auth_rate_limit,
    get_current_customer,
    get_current_staff,
    get_customer_auth_service,
    get_staff_auth_service,
)
from lazla_api.api.errors import to_http_exception
from lazla_api.config import settings
from lazla_api.exceptions import LazlaError
from lazla_api.models.api import (
    AccessTokenResponse,
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RefreshTokenRequest,
    ResendOtpRequest,
    SignupRequest,
    UserResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from lazla_api.models.domain import AccountData, IssuedSession
from lazla_api.services.auth import AuthService

REFRESH_COOKIE_NAME = "refreshToken"
# Same reply for unknown, pending and verified emails.
RESEND_OTP_MESSAGE = "If the email is registered and unverified, a new OTP has been sent"
CUSTOMER_PREFIX = "/api/auth/customer"
STAFF_PREFIX = "/api/auth/staff"

customer_router = APIRouter(prefix=CUSTOMER_PREFIX, tags=["auth-customer"])
staff_router = APIRouter(prefix=STAFF_PREFIX, tags=["auth-staff"])


def user_response(account: AccountData) -> UserResponse:
    """Public profile; password and token fields never leave the service."""
    return UserResponse(
        id=account.account_id,
        username=account.username,
        email=account.email,
        created_at=account.created_at,
    )


def set_refresh_cookie(response: Response, refresh_token: str, path: str) -> None:
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=refresh_token,
        max_age=int(settings.refresh_token_ttl.total_seconds()),
        path=path,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_refresh_cookie(response: Response, path: str) -> None:
    response.delete_cookie(
        key=REFRESH_COOKIE_NAME,
        path=path,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def presented_refresh_token(cookie_token: str | None, body: RefreshTokenRequest | None) -> str:
    """Cookie first, then JSON body; 400 when neither carries a token."""
    token = cookie_token or (body.refresh_token if body else None)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="refreshToken required"
        )
    return token


def _session_response(
    issued: IssuedSession, response: Response, cookie_path: str
) -> AuthResponse:
    set_refresh_cookie(response, issued.refresh_token, cookie_path)
    return AuthResponse(user=user_response(issued.account), access_token=issued.access_token)


# ============================================================================
# Customer-only Endpoints
# ============================================================================


@customer_router.post(
    "/signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
async def signup(
    request: SignupRequest,
    response: Response,
    service: AuthService = Depends(get_customer_auth_service),
) -> AuthResponse:
    """
    Register a customer and email a verification code.

    Returns the access token; the refresh token is set as a cookie.
    """
    try:
        issued = await service.signup(request.username, request.email, request.password)
    except LazlaError as exc:
        raise to_http_exception(exc) from exc
    return _session_response(issued, response, f"{CUSTOMER_PREFIX}/refresh")


@customer_router.post(
    "/verify-otp",
    response_model=VerifyOtpResponse,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
async def verify_otp(
    request: VerifyOtpRequest,
    service: AuthService = Depends(get_customer_auth_service),
) -> VerifyOtpResponse:
    """Verify the emailed code; 400 with invalid/expired flags on failure."""
    try:
        await service.verify_otp(request.email, request.otp)
    except LazlaError as exc:
        raise to_http_exception(exc) from exc
    return VerifyOtpResponse()


@customer_router.post(
    "/resend-otp",
    response_model=MessageResponse,
    dependencies=[Depends(enforce_auth_rate_limit)],
)
async def resend_otp(
    request: ResendOtpRequest,
    service: AuthService = Depends(get_customer_auth_service),
) -> MessageResponse:
    try:
        await service.resend_otp(request.email)
    except LazlaError as exc:
        raise to_http_exception(exc) from exc
    return MessageResponse(message=RESEND_OTP_MESSAGE)


# ============================================================================
# Session Endpoints (both principals)
# ============================================================================


def _add_session_routes(
    router: APIRouter,
    prefix: str,
    get_service: Callable[..., Awaitable[AuthService]],
    get_caller: Callable[..., Awaitable[AuthenticatedPrincipal]],
) -> None:
    cookie_path = f"{prefix}/refresh"

    @router.post("/login", response_model=AuthResponse)
    async def login(
        request: LoginRequest,
        response: Response,
        service: AuthService = Depends(get_service),
    ) -> AuthResponse:
        try:
            issued = await service.login(request.email, request.password)
        except LazlaError as exc:
            raise to_http_exception(exc) from exc
        return _session_response(issued, response, cookie_path)

    @router.post("/refresh", response_model=AccessTokenResponse)
    async def refresh(
        response: Response,
        body: RefreshTokenRequest | None = None,
        refresh_cookie: str | None = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
        service: AuthService = Depends(get_service),
    ) -> AccessTokenResponse:
        """Rotate the refresh token; the presented token stops working."""
        token = presented_refresh_token(refresh_cookie, body)
        try:
            issued = await service.refresh(token)
        except LazlaError as exc:
            raise to_http_exception(exc) from exc
        set_refresh_cookie(response, issued.refresh_token, cookie_path)
        return AccessTokenResponse(access_token=issued.access_token)

    @router.post("/logout", response_model=MessageResponse)
    async def logout(
        response: Response,
        body: RefreshTokenRequest | None = None,
        refresh_cookie: str | None = Cookie(default=None, alias=REFRESH_COOKIE_NAME),
        service: AuthService = Depends(get_service),
    ) -> MessageResponse:
        """Always succeeds; a missing or invalid token only clears the cookie."""
        token = refresh_cookie or (body.refresh_token if body else None)
        if token:
            await service.logout(token)
        clear_refresh_cookie(response, cookie_path)
        return MessageResponse(message="logged out")

    @router.post("/change-password", response_model=MessageResponse)
    async def change_password(
        request: ChangePasswordRequest,
        caller: AuthenticatedPrincipal = Depends(get_caller),
        service: AuthService = Depends(get_service),
    ) -> MessageResponse:
        """Change password and end the current session; the client must log in again."""
        try:
            await service.change_password(
                caller.account_id, request.old_password, request.new_password
            )
        except LazlaError as exc:
            raise to_http_exception(exc) from exc
        return MessageResponse(message="password changed")

    @router.get("/me", response_model=MeResponse)
    async def me(
        caller: AuthenticatedPrincipal = Depends(get_caller),
        service: AuthService = Depends(get_service),
    ) -> MeResponse:
        try:
            account = await service.get_profile(caller.account_id)
        except LazlaError as exc:
            raise to_http_exception(exc) from exc
        return MeResponse(user=user_response(account))


_add_session_routes(
    customer_router, CUSTOMER_PREFIX, get_customer_auth_service, get_current_customer
)
_add_session_routes(staff_router, STAFF_PREFIX, get_staff_auth_service, get_current_staff)
