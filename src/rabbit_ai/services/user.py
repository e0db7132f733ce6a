"""User profile operations, run through the cached user repository."""

from __future__ import annotations

import logging

from rabbit_ai.cache.effects import Outcome
from rabbit_ai.core.errors import InvalidCredentialsError, UserNotFoundError
from rabbit_ai.core.models import User
from rabbit_ai.persistence.cached import CachedUserRepository
from rabbit_ai.security.passwords import verify_password

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, users: CachedUserRepository):
        self.users = users

    async def get_user(self, user_id: int) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def update_user(
        self, user_id: int, nickname: str = "", avatar: str = ""
    ) -> Outcome[User]:
        """Update nickname and/or avatar. Empty values keep the current ones."""
        user = await self.get_user(user_id)
        changes = {}
        if nickname:
            changes["nickname"] = nickname
        if avatar:
            changes["avatar"] = avatar
        return await self.users.update_outcome(user.model_copy(update=changes))

    async def update_password(self, user_id: int, old_password: str, new_password: str) -> None:
        """Change the password.

        If the account already has a password, `old_password` must match it.
        The hash is read from the store, never from the cache.
        """
        stored = await self.users.repo.get_by_id(user_id)
        if stored is None:
            raise UserNotFoundError(user_id)
        if stored.has_password and not verify_password(old_password, stored.password_hash):
            raise InvalidCredentialsError()
        await self.users.update_password(user_id, new_password)
        logger.info("Password updated for user %s", user_id)

    async def delete_user(self, user_id: int) -> Outcome[None]:
        outcome = await self.users.delete_outcome(user_id)
        logger.info("Deleted user %s", user_id)
        return outcome
