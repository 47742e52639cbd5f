"""
Observability module - Logging, Metrics, and Tracing.
"""

from lazla_api.observability.logging import get_logger, setup_logging
from lazla_api.observability.metrics import metrics
from lazla_api.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
