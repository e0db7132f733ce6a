"""FastAPI dependencies: container access and bearer-token authentication.

Usage:
    @router.get("/profile")
    async def profile(user_id: CurrentUserId, container: ContainerDep):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from rabbit_ai.container import AppContainer
from rabbit_ai.core.errors import InvalidTokenError
from rabbit_ai.observability.logging import user_id_var


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


ContainerDep = Annotated[AppContainer, Depends(get_container)]


async def get_current_user_id(
    container: ContainerDep,
    authorization: Annotated[str | None, Header()] = None,
) -> int:
    """Validate the Bearer token and return the caller's user ID."""
    if not authorization:
        raise InvalidTokenError("Authorization header is required")
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token:
        raise InvalidTokenError("Invalid authorization header format")

    user_id = container.tokens.verify(token)
    user_id_var.set(str(user_id))
    return user_id


CurrentUserId = Annotated[int, Depends(get_current_user_id)]
