"""Read-through / write-through caching decorator for the user repository.

Wraps any `UserRepository` and keeps `user:<id>` entries in step with it:

| Operation                   | Durable store  | Cache                                 |
|-----------------------------|----------------|---------------------------------------|
| create, create_with_password| insert first   | best-effort set                       |
| get_by_id                   | on miss only   | read first (errors = miss), repopulate|
| get_by_phone, verify, ...   | always         | bypassed                              |
| update                      | update first   | best-effort overwrite                 |
| update_password             | update first   | delete; failure is raised             |
| delete                      | delete first   | best-effort delete                    |

The durable-store call always runs first and its failure aborts the
operation before any cache effect. Cache effects never roll back a durable
change.
"""

from __future__ import annotations

import logging

from rabbit_ai.cache.effects import CacheEffect, Outcome, best_effort
from rabbit_ai.cache.keys import CacheKeys
from rabbit_ai.cache.user_cache import UserCache
from rabbit_ai.core.errors import CacheError
from rabbit_ai.core.models import User
from rabbit_ai.observability.metrics import record_cache_error
from rabbit_ai.persistence.repositories import UserRepository

logger = logging.getLogger(__name__)


class CachedUserRepository:
    """UserRepository that mirrors entity reads and writes into UserCache.

    The `*_outcome` methods report each secondary cache effect; the plain
    methods implement the UserRepository interface and return the value only.
    """

    def __init__(self, repo: UserRepository, cache: UserCache):
        self.repo = repo
        self.cache = cache

    async def _write_through(self, operation: str, user: User) -> Outcome[User]:
        effect = await best_effort(operation, CacheKeys.user(user.id), self.cache.set(user))
        return Outcome(user, (effect,))

    # -------------------------------------------------------------------------
    # Outcome-reporting operations
    # -------------------------------------------------------------------------

    async def create_outcome(self, user: User) -> Outcome[User]:
        created = await self.repo.create(user)
        return await self._write_through("set_user", created)

    async def create_with_password_outcome(self, user: User, password: str) -> Outcome[User]:
        created = await self.repo.create_with_password(user, password)
        return await self._write_through("set_user", created)

    async def get_by_id_outcome(self, user_id: int) -> Outcome[User | None]:
        """Cache first; fall back to the store and repopulate on a miss.

        A cache read error is treated exactly like a miss.
        """
        key = CacheKeys.user(user_id)
        effects: list[CacheEffect] = []
        try:
            cached = await self.cache.get(user_id)
        except CacheError as e:
            logger.warning("Cache read failed for %s, falling back to store: %s", key, e)
            record_cache_error("get_user")
            effects.append(CacheEffect("get_user", key, e))
            cached = None

        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return Outcome(cached)

        user = await self.repo.get_by_id(user_id)
        if user is None:
            return Outcome(None, tuple(effects))

        effects.append(await best_effort("populate_user", key, self.cache.set(user)))
        return Outcome(user, tuple(effects))

    async def update_outcome(self, user: User) -> Outcome[User]:
        updated = await self.repo.update(user)
        return await self._write_through("overwrite_user", updated)

    async def delete_outcome(self, user_id: int) -> Outcome[None]:
        await self.repo.delete(user_id)
        key = CacheKeys.user(user_id)
        effect = await best_effort("delete_user", key, self.cache.delete(user_id))
        return Outcome(None, (effect,))

    # -------------------------------------------------------------------------
    # UserRepository interface
    # -------------------------------------------------------------------------

    async def create(self, user: User) -> User:
        return (await self.create_outcome(user)).value

    async def create_with_password(self, user: User, password: str) -> User:
        return (await self.create_with_password_outcome(user, password)).value

    async def get_by_id(self, user_id: int) -> User | None:
        return (await self.get_by_id_outcome(user_id)).value

    async def update(self, user: User) -> User:
        return (await self.update_outcome(user)).value

    async def delete(self, user_id: int) -> None:
        await self.delete_outcome(user_id)

    async def update_password(self, user_id: int, new_password: str) -> None:
        """Change the password, then drop the cached entry.

        A failed cache delete is raised: a stale password-bearing entry must
        not outlive the change. The new password stays in effect either way.
        """
        await self.repo.update_password(user_id, new_password)
        try:
            await self.cache.delete(user_id)
        except CacheError:
            logger.error("Failed to invalidate %s after password change", CacheKeys.user(user_id))
            record_cache_error("invalidate_user_password")
            raise

    # Lookups that bypass the cache

    async def get_by_phone(self, phone: str) -> User | None:
        return await self.repo.get_by_phone(phone)

    async def get_by_github_id(self, github_id: str) -> User | None:
        return await self.repo.get_by_github_id(github_id)

    async def get_by_email(self, email: str) -> User | None:
        return await self.repo.get_by_email(email)

    async def get_by_device_id(self, device_id: str) -> User | None:
        return await self.repo.get_by_device_id(device_id)

    async def verify_password(self, phone: str, password: str) -> User:
        return await self.repo.verify_password(phone, password)

    async def list_users(self, limit: int, offset: int = 0) -> list[User]:
        return await self.repo.list_users(limit, offset)
