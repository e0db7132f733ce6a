"""Profile endpoints for the authenticated user."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

from rabbit_ai.api.deps import ContainerDep, CurrentUserId
from rabbit_ai.api.responses import ok

router = APIRouter(prefix="/users", tags=["users"])


class UpdateProfileRequest(BaseModel):
    nickname: str = ""
    avatar: str = ""


class UpdatePasswordRequest(BaseModel):
    old_password: str = ""
    new_password: str = Field(min_length=6)


@router.get("/profile")
async def get_profile(user_id: CurrentUserId, container: ContainerDep) -> ORJSONResponse:
    user = await container.user_service.get_user(user_id)
    return ok(user.public_dict())


@router.put("/profile")
async def update_profile(
    body: UpdateProfileRequest, user_id: CurrentUserId, container: ContainerDep
) -> ORJSONResponse:
    outcome = await container.user_service.update_user(user_id, body.nickname, body.avatar)
    return ok(outcome.value.public_dict(), "Profile updated")


@router.put("/password")
async def update_password(
    body: UpdatePasswordRequest, user_id: CurrentUserId, container: ContainerDep
) -> ORJSONResponse:
    await container.user_service.update_password(user_id, body.old_password, body.new_password)
    return ok(message="Password updated")


@router.delete("/profile")
async def delete_profile(user_id: CurrentUserId, container: ContainerDep) -> ORJSONResponse:
    await container.user_service.delete_user(user_id)
    return ok(message="User deleted")


@router.get("/{target_id}")
async def get_user(
    target_id: int, user_id: CurrentUserId, container: ContainerDep
) -> ORJSONResponse:
    user = await container.user_service.get_user(target_id)
    return ok(user.public_dict())
