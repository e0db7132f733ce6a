"""Tests for Prometheus instrumentation helpers."""

from __future__ import annotations

import pytest

from rabbit_ai.observability.metrics import MetricsMiddleware, MetricsRegistry


@pytest.mark.parametrize(
    "path, normalized",
    [
        ("/api/v1/conversations/42/messages", "/api/v1/conversations/{id}/messages"),
        ("/api/v1/cache/users/7", "/api/v1/cache/users/{id}"),
        ("/api/v1/users/profile", "/api/v1/users/profile"),
        ("/", "/"),
    ],
)
def test_normalize_path(path: str, normalized: str) -> None:
    assert MetricsMiddleware._normalize_path(path) == normalized


def test_disabled_registry() -> None:
    registry = MetricsRegistry()

    registry.initialize(enabled=False)

    assert registry.generate_latest() == b"# Metrics disabled\n"
    assert registry.cache_hits_total is None
