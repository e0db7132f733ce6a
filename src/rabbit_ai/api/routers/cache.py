"""Cache administration endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from rabbit_ai.api.deps import ContainerDep
from rabbit_ai.api.responses import envelope, ok
from rabbit_ai.core.errors import CacheError

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats")
async def get_stats(container: ContainerDep) -> ORJSONResponse:
    stats = await container.cache_manager.get_stats()
    return ok(stats.to_dict())


@router.get("/health")
async def health(container: ContainerDep) -> ORJSONResponse:
    try:
        await container.cache_manager.health_check()
    except CacheError as e:
        body = envelope({"status": "unhealthy", "error": str(e)}, "Cache unhealthy", 503)
        return ORJSONResponse(body, status_code=503)
    return ok({"status": "healthy"})


@router.delete("/users/{user_id}")
async def delete_user_cache(user_id: int, container: ContainerDep) -> ORJSONResponse:
    await container.user_cache.delete(user_id)
    return ok({"user_id": user_id}, "User cache deleted")


@router.delete("/users")
async def clear_user_cache(container: ContainerDep) -> ORJSONResponse:
    deleted = await container.cache_manager.clear_all_users()
    return ok({"deleted": deleted}, "User cache cleared")
