"""Prometheus metrics for the Rabbit AI service.

Provides metrics collection and exposure:
- HTTP request metrics (latency, count)
- Cache metrics (hits, misses, failed operations, latency)
- Chat-completion call metrics (outcome by status code)

Usage:
    from rabbit_ai.observability.metrics import record_cache_hit

    record_cache_hit("user")
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

if TYPE_CHECKING:
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    # HTTP metrics
    http_requests_total: Any = None
    http_request_duration_seconds: Any = None

    # Cache metrics
    cache_hits_total: Any = None
    cache_misses_total: Any = None
    cache_errors_total: Any = None
    cache_operation_duration_seconds: Any = None

    # Chat completion metrics
    chat_requests_total: Any = None

    enabled: bool = True
    _initialized: bool = field(default=False, repr=False)
    _registry: Any = field(default=None, repr=False)

    def initialize(self, enabled: bool = True) -> None:
        """Initialize Prometheus metrics."""
        if self._initialized:
            return

        self.enabled = enabled
        if not enabled:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        from prometheus_client import REGISTRY, Counter, Histogram

        self._registry = REGISTRY

        self.http_requests_total = Counter(
            "rabbit_http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
        )

        self.http_request_duration_seconds = Histogram(
            "rabbit_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "path"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0, 30.0),
        )

        self.cache_hits_total = Counter(
            "rabbit_cache_hits_total",
            "Cache hits",
            ["entity"],
        )

        self.cache_misses_total = Counter(
            "rabbit_cache_misses_total",
            "Cache misses",
            ["entity"],
        )

        self.cache_errors_total = Counter(
            "rabbit_cache_errors_total",
            "Failed cache operations",
            ["operation"],
        )

        self.cache_operation_duration_seconds = Histogram(
            "rabbit_cache_operation_duration_seconds",
            "Cache operation latency in seconds",
            ["operation"],
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05),
        )

        self.chat_requests_total = Counter(
            "rabbit_chat_requests_total",
            "Chat-completion requests by outcome",
            ["outcome"],
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if not self.enabled or self._registry is None:
            return b"# Metrics disabled\n"

        from prometheus_client import generate_latest

        return generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware recording request count and duration."""

    def __init__(self, app: "ASGIApp") -> None:
        super().__init__(app)
        self.metrics = get_metrics()

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        """Record metrics for HTTP requests."""
        if request.url.path in ("/health", "/metrics"):
            return await call_next(request)

        method = request.method
        path = self._normalize_path(request.url.path)
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time
            if self.metrics.http_requests_total:
                self.metrics.http_requests_total.labels(
                    method=method, path=path, status=status_code
                ).inc()
            if self.metrics.http_request_duration_seconds:
                self.metrics.http_request_duration_seconds.labels(
                    method=method, path=path
                ).observe(duration)

    @staticmethod
    def _normalize_path(path: str) -> str:
        """Replace numeric path segments with a placeholder.

        /api/v1/conversations/42/messages -> /api/v1/conversations/{id}/messages
        """
        parts = ["{id}" if part.isdigit() else part for part in path.strip("/").split("/")]
        return "/" + "/".join(parts)


def record_cache_hit(entity: str) -> None:
    """Record cache hit."""
    metrics = get_metrics()
    if metrics.cache_hits_total:
        metrics.cache_hits_total.labels(entity=entity).inc()


def record_cache_miss(entity: str) -> None:
    """Record cache miss."""
    metrics = get_metrics()
    if metrics.cache_misses_total:
        metrics.cache_misses_total.labels(entity=entity).inc()


def record_cache_error(operation: str) -> None:
    """Record a failed (and swallowed) cache operation."""
    metrics = get_metrics()
    if metrics.cache_errors_total:
        metrics.cache_errors_total.labels(operation=operation).inc()


def record_cache_operation(operation: str, duration: float) -> None:
    """Record cache operation duration."""
    metrics = get_metrics()
    if metrics.cache_operation_duration_seconds:
        metrics.cache_operation_duration_seconds.labels(operation=operation).observe(duration)


def record_chat_request(outcome: str) -> None:
    """Record a chat-completion call outcome ("success" or the error code)."""
    metrics = get_metrics()
    if metrics.chat_requests_total:
        metrics.chat_requests_total.labels(outcome=outcome).inc()
