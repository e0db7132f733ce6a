"""Health check endpoints.

- /health/live  - Liveness probe (always OK while the process runs)
- /health/ready - Readiness probe (checks database and cache connectivity)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from rabbit_ai.api.deps import ContainerDep
from rabbit_ai.container import AppContainer

router = APIRouter(tags=["health"])

CHECK_TIMEOUT = 5.0


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    """Health status of a single component."""

    name: str
    status: HealthStatus
    latency_ms: float
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            result["message"] = self.message
        return result


async def _timed(name: str, check: Any) -> ComponentHealth:
    start = time.monotonic()
    try:
        healthy = await asyncio.wait_for(check, timeout=CHECK_TIMEOUT)
        message = None if healthy else f"{name} check failed"
    except asyncio.TimeoutError:
        healthy, message = False, f"{name} check timed out"
    latency = (time.monotonic() - start) * 1000
    status = HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY
    return ComponentHealth(name, status, latency, message)


async def check_database(container: AppContainer) -> ComponentHealth:
    if container.database is None:
        return ComponentHealth("database", HealthStatus.HEALTHY, 0.0, "in-memory store")
    return await _timed("database", container.database.health_check())


async def check_redis(container: AppContainer) -> ComponentHealth:
    return await _timed("redis", container.store.health_check())


async def _report(container: AppContainer) -> tuple[HealthStatus, list[ComponentHealth]]:
    components = list(await asyncio.gather(check_database(container), check_redis(container)))
    healthy = all(c.status == HealthStatus.HEALTHY for c in components)
    return (HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY), components


@router.get("/health")
async def full_health(container: ContainerDep) -> ORJSONResponse:
    """Full health report. 200 when every dependency is up, 503 otherwise."""
    overall, components = await _report(container)
    checks: dict[str, dict[str, Any]] = {}
    for component in components:
        entry: dict[str, Any] = {
            "status": "up" if component.status == HealthStatus.HEALTHY else "down",
            "latency_ms": round(component.latency_ms, 2),
        }
        if component.message:
            entry["message"] = component.message
        checks[component.name] = entry

    return ORJSONResponse(
        content={"status": overall.value, "service": container.settings.app_name, "checks": checks},
        status_code=200 if overall == HealthStatus.HEALTHY else 503,
    )


@router.get("/health/live")
async def live() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready")
async def ready(container: ContainerDep) -> ORJSONResponse:
    """Readiness probe: 200 if the database and Redis respond, 503 otherwise."""
    overall, components = await _report(container)
    return ORJSONResponse(
        content={"status": overall.value, "components": [c.to_dict() for c in components]},
        status_code=200 if overall == HealthStatus.HEALTHY else 503,
    )
