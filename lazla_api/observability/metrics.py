"""
Metrics Collection with Prometheus.

Exposes auth and delivery-settlement metrics for monitoring.
"""

from enum import StrEnum
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram, Info

from lazla_api.config import settings


class MetricLabels(StrEnum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    PRINCIPAL = "principal"
    OUTCOME = "outcome"
    EVENT_TYPE = "event_type"
    ERROR_TYPE = "error_type"


class LazlaMetrics:
    """
    Centralized metrics for the Lazla backend.

    Covers:
    - HTTP requests (rate, duration, in flight)
    - Auth operations by principal and outcome
    - OTP email delivery
    - Payment events and COD settlements
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info("lazla_service", "Service information")
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "lazla_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "lazla_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "lazla_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Auth Metrics
        # ====================================================================
        self.auth_operations_total = Counter(
            "lazla_auth_operations_total",
            "Auth operations by principal and outcome",
            [MetricLabels.OPERATION, MetricLabels.PRINCIPAL, MetricLabels.OUTCOME],
        )

        self.otp_emails_total = Counter(
            "lazla_otp_emails_total",
            "OTP verification emails by delivery result",
            ["success"],
        )

        self.rate_limited_total = Counter(
            "lazla_rate_limited_total",
            "Requests rejected by the auth rate limiter",
            [MetricLabels.ENDPOINT],
        )

        # ====================================================================
        # Delivery / Payment Metrics
        # ====================================================================
        self.payment_events_total = Counter(
            "lazla_payment_events_total",
            "Payment events appended",
            [MetricLabels.EVENT_TYPE],
        )

        self.cod_settlements_total = Counter(
            "lazla_cod_settlements_total",
            "COD settlement transactions",
            ["success", "already_paid"],
        )

        self.cod_settlement_duration_seconds = Histogram(
            "lazla_cod_settlement_duration_seconds",
            "COD settlement transaction duration in seconds",
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "lazla_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_auth(self, operation: str, principal: str, outcome: str) -> None:
        """Record an auth operation outcome (success, unauthorized, conflict, ...)."""
        self.auth_operations_total.labels(
            operation=operation, principal=principal, outcome=outcome
        ).inc()

    def record_otp_email(self, success: bool) -> None:
        self.otp_emails_total.labels(success=str(success)).inc()

    def record_payment_event(self, event_type: str) -> None:
        self.payment_events_total.labels(event_type=event_type).inc()

    def record_cod_settlement(self, success: bool, already_paid: bool, duration: float) -> None:
        """Record COD settlement metrics."""
        self.cod_settlements_total.labels(
            success=str(success), already_paid=str(already_paid)
        ).inc()
        self.cod_settlement_duration_seconds.observe(duration)

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = LazlaMetrics()


def get_metrics_handler() -> Callable[[], bytes]:
    """Get a callable rendering the default registry in Prometheus text format."""
    from prometheus_client import REGISTRY, generate_latest

    def metrics_endpoint() -> bytes:
        return generate_latest(REGISTRY)

    return metrics_endpoint
