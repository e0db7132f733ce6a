"""Device identity endpoints. The device ID comes from request headers."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

from rabbit_ai.api.deps import ContainerDep, CurrentUserId
from rabbit_ai.api.responses import ok
from rabbit_ai.core.errors import ValidationError
from rabbit_ai.services.device import extract_device_id, extract_platform

router = APIRouter(prefix="/device", tags=["device"])


def _device_id(request: Request) -> str:
    device_id = extract_device_id(request.headers)
    if not device_id:
        raise ValidationError("Device ID is required")
    return device_id


@router.get("/user")
async def get_or_create_user(request: Request, container: ContainerDep) -> ORJSONResponse:
    device_id = _device_id(request)
    platform = extract_platform(request.headers)
    user, created = await container.device_service.get_or_create_user(device_id, platform)
    return ok(
        {
            "device_id": device_id,
            "platform": platform,
            "user": user.public_dict(),
            "is_new": created,
        }
    )


@router.get("/user/info")
async def get_user_by_device(request: Request, container: ContainerDep) -> ORJSONResponse:
    device_id = _device_id(request)
    user = await container.device_service.get_user_by_device_id(device_id)
    return ok({"device_id": device_id, "user": user.public_dict()})


@router.post("/bind")
async def bind_device(
    request: Request, user_id: CurrentUserId, container: ContainerDep
) -> ORJSONResponse:
    device_id = _device_id(request)
    user = await container.device_service.bind_device(user_id, device_id)
    return ok({"device_id": device_id, "user": user.public_dict()}, "Device bound")


@router.delete("/unbind")
async def unbind_device(user_id: CurrentUserId, container: ContainerDep) -> ORJSONResponse:
    user = await container.device_service.unbind_device(user_id)
    return ok({"user": user.public_dict()}, "Device unbound")
