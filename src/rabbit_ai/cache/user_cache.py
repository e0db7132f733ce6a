"""User entity cache.

Stores a point-in-time copy of a User under `user:<id>` with a bounded TTL
(30 minutes by default). The durable store stays authoritative.
"""

from __future__ import annotations

import orjson
from pydantic import ValidationError

from rabbit_ai.cache.keys import USER_TTL, CacheKeys
from rabbit_ai.cache.redis import RedisCache
from rabbit_ai.core.errors import CacheSerializationError
from rabbit_ai.core.models import User


def _require_id(user: User) -> int:
    if user.id is None:
        raise CacheSerializationError("Cannot cache a user without an ID")
    return user.id


class UserCache:
    """Typed cache operations for User entities."""

    def __init__(self, store: RedisCache, ttl: int = USER_TTL):
        self.store = store
        self.ttl = ttl

    async def set(self, user: User) -> None:
        """Cache the user's full field set."""
        key = CacheKeys.user(_require_id(user))
        try:
            data = orjson.dumps(user.model_dump(mode="json"))
        except (TypeError, orjson.JSONEncodeError) as e:
            raise CacheSerializationError(f"Failed to encode user {user.id}: {e}") from e
        await self.store.set(key, data, self.ttl)

    async def get(self, user_id: int) -> User | None:
        """Get a cached user.

        Returns:
            The user, or None on a miss.

        Raises:
            CacheSerializationError: If the stored entry is corrupt.
        """
        key = CacheKeys.user(user_id)
        raw = await self.store.get(key)
        if raw is None:
            return None
        try:
            return User.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            raise CacheSerializationError(f"Corrupt cache entry {key}: {e}") from e

    async def delete(self, user_id: int) -> None:
        """Remove the cached user. Absent entries are a no-op."""
        await self.store.delete(CacheKeys.user(user_id))

    async def invalidate(self, user_id: int) -> None:
        """Alias of delete, used where the intent is invalidation."""
        await self.delete(user_id)
