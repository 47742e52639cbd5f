"""
Exception Classes - Strongly typed exception hierarchy.

Services raise these; routes translate them into HTTP responses.
"""


class LazlaError(Exception):
    """Base exception for all domain errors."""

    pass


class InvalidInputError(LazlaError):
    """Raised when input is missing or malformed."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid input: {message}")


class ConflictError(LazlaError):
    """Raised when a unique value (email, username) is already registered."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Conflict on {field}: {message}")


class UnauthorizedError(LazlaError):
    """
    Raised when credentials or tokens are rejected.

    The message is what the client sees, so it never says whether the
    account exists.
    """

    def __init__(self, message: str = "invalid credentials") -> None:
        self.message = message
        super().__init__(f"Unauthorized: {message}")


class InvalidTokenError(UnauthorizedError):
    """Raised when a token signature, expiry, type or shape is invalid."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__("invalid or expired token")


class NotFoundError(LazlaError):
    """Raised when an account, purchase or OTP record doesn't exist."""

    def __init__(self, resource: str, message: str | None = None) -> None:
        self.resource = resource
        self.message = message or f"{resource} not found"
        super().__init__(self.message)


class OtpNotFoundError(NotFoundError):
    """Raised when no OTP was ever sent for the address."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("otp", "no otp on file for this email")


class OtpInvalidError(LazlaError):
    """Raised when the presented OTP does not match the stored hash."""

    def __init__(self) -> None:
        super().__init__("invalid otp")


class OtpExpiredError(LazlaError):
    """Raised when the presented OTP matches but its window has passed."""

    def __init__(self) -> None:
        super().__init__("otp expired")


class DependencyFailureError(LazlaError):
    """Raised when a downstream dependency (mail, database) fails."""

    def __init__(self, dependency: str, message: str) -> None:
        self.dependency = dependency
        self.message = message
        super().__init__(f"{dependency} failure: {message}")


class WriteVerificationError(LazlaError):
    """Raised when database write verification fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Write verification failed: {message}")


class RateLimitExceededError(LazlaError):
    """Raised when a client exceeds the request budget for a window."""

    def __init__(self, identifier: str, retry_after_seconds: int) -> None:
        self.identifier = identifier
        self.retry_after_seconds = retry_after_seconds
        super().__init__("too many requests")
