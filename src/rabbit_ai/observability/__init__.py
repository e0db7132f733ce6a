"""Observability module for the Rabbit AI service.

Provides structured logging and Prometheus metrics:
- JSON structured logging with request and user correlation
- Cache hit/miss/error counters and chat-completion outcomes
- HTTP request instrumentation
"""

from rabbit_ai.observability.logging import (
    LogContext,
    configure_logging,
    request_id_var,
    user_id_var,
)
from rabbit_ai.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "request_id_var",
    "user_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
    "MetricsMiddleware",
]
