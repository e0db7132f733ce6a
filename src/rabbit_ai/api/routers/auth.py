"""Login, registration and GitHub OAuth endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

from rabbit_ai.api.deps import ContainerDep
from rabbit_ai.api.responses import ok
from rabbit_ai.services.device import extract_platform

router = APIRouter(prefix="/auth", tags=["auth"])


class OneClickLoginRequest(BaseModel):
    auth_code: str = Field(min_length=1)


class PasswordLoginRequest(BaseModel):
    phone: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    phone: str = Field(min_length=1)
    password: str = Field(min_length=6)
    nickname: str = Field(min_length=1)


class GitHubLoginRequest(BaseModel):
    code: str = Field(min_length=1)
    state: str = ""


@router.post("/login")
async def one_click_login(
    body: OneClickLoginRequest, request: Request, container: ContainerDep
) -> ORJSONResponse:
    """Aliyun one-click login."""
    platform = extract_platform(request.headers)
    result = await container.auth_service.one_click_login(body.auth_code, platform)
    return ok(result.to_dict(), "Login successful")


@router.post("/login/password")
async def password_login(body: PasswordLoginRequest, container: ContainerDep) -> ORJSONResponse:
    result = await container.auth_service.password_login(body.phone, body.password)
    return ok(result.to_dict(), "Login successful")


@router.post("/register")
async def register(
    body: RegisterRequest, request: Request, container: ContainerDep
) -> ORJSONResponse:
    platform = extract_platform(request.headers)
    result = await container.auth_service.register(
        body.phone, body.password, body.nickname, platform
    )
    return ok(result.to_dict(), "Registration successful", status_code=201)


@router.get("/github/url")
async def github_auth_url(
    container: ContainerDep, state: str | None = Query(default=None)
) -> ORJSONResponse:
    url, state = container.auth_service.github_auth_url(state)
    return ok({"auth_url": url, "state": state})


@router.post("/github/login")
async def github_login(body: GitHubLoginRequest, container: ContainerDep) -> ORJSONResponse:
    result = await container.auth_service.github_login(body.code)
    return ok(result.to_dict(), "Login successful")


@router.get("/github/callback")
async def github_callback(
    container: ContainerDep, code: str = Query(min_length=1), state: str = ""
) -> ORJSONResponse:
    """OAuth redirect target; completes the login with the returned code."""
    result = await container.auth_service.github_login(code)
    return ok(result.to_dict(), "Login successful")
