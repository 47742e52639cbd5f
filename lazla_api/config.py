"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - JWT secrets, database and mail transport are validated at startup.
"""

import re
import sys
from datetime import timedelta

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


def parse_duration(value: str) -> timedelta:
    """
    Parse a compact duration string such as "15m", "7d", "3600".

    A bare integer is interpreted as seconds.

    Raises:
        ValueError: If the value is not a positive duration
    """
    match = _DURATION_PATTERN.match(value)
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}")
    amount = int(match.group(1))
    if amount <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return timedelta(**{_DURATION_UNITS[match.group(2)]: amount})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_read_url: str | None = None  # Optional read replica
    database_pool_size: int = 10
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations_on_startup: bool = False

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = Field(default=3002, validation_alias="PORT")
    api_title: str = "Lazla Backend API"
    api_version: str = "0.1.0"
    api_description: str = "Customer/staff authentication and cash-on-delivery settlement"
    environment: str = "development"

    # Token signing - separate secrets per token type
    jwt_access_secret: str = ""
    jwt_refresh_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expires_in: str = "15m"
    refresh_token_expires_in: str = "7d"

    # Credential hashing (argon2id cost factors); BCRYPT_SALT_ROUNDS is ignored
    password_hash_time_cost: int = 3
    password_hash_memory_cost: int = 65536
    password_hash_parallelism: int = 4

    # Email verification
    otp_length: int = 6
    otp_ttl_minutes: int = 15

    # Mail transport
    email_backend: str = "smtp"  # smtp or console
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_secure: bool = False  # True = implicit TLS, False = STARTTLS
    smtp_timeout_seconds: int = 30
    from_email: str = ""

    # Per-client rate limiting on the unauthenticated auth endpoints
    auth_rate_limit_max_requests: int = 5
    auth_rate_limit_window_minutes: int = 10

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "lazla-backend"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start without token secrets or a mail transport,
        otherwise signup would create accounts that can never be verified.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if not self.jwt_access_secret:
            errors.append("JWT_ACCESS_SECRET is required but empty or missing")
        if not self.jwt_refresh_secret:
            errors.append("JWT_REFRESH_SECRET is required but empty or missing")
        if self.jwt_access_secret and self.jwt_access_secret == self.jwt_refresh_secret:
            errors.append("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")

        for name, value in (
            ("ACCESS_TOKEN_EXPIRES_IN", self.access_token_expires_in),
            ("REFRESH_TOKEN_EXPIRES_IN", self.refresh_token_expires_in),
        ):
            try:
                parse_duration(value)
            except ValueError as e:
                errors.append(f"{name}: {e}")

        if self.email_backend not in ("smtp", "console"):
            errors.append(f"EMAIL_BACKEND must be 'smtp' or 'console', got: {self.email_backend}")
        elif self.email_backend == "smtp":
            missing = [
                env_name
                for env_name, value in (
                    ("SMTP_HOST", self.smtp_host),
                    ("SMTP_USER", self.smtp_user),
                    ("SMTP_PASS", self.smtp_pass),
                    ("FROM_EMAIL", self.from_email),
                )
                if not value
            ]
            if missing:
                errors.append(f"SMTP settings missing: {', '.join(missing)}")

        if not 4 <= self.otp_length <= 10:
            errors.append(f"OTP_LENGTH must be between 4 and 10, got: {self.otp_length}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def read_database_url(self) -> str:
        """Get read database URL (fallback to primary if no replica)."""
        return self.database_read_url or self.database_url

    @property
    def access_token_ttl(self) -> timedelta:
        return parse_duration(self.access_token_expires_in)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return parse_duration(self.refresh_token_expires_in)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
