"""Administrative operations over the user cache.

Bulk warm-up, batch set/delete, refresh, clear-all, health and stats.
Bulk operations are best-effort per item: one failing user is logged and
skipped, the rest still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from rabbit_ai.cache.effects import CacheEffect, best_effort
from rabbit_ai.cache.keys import CacheKeys
from rabbit_ai.cache.redis import RedisCache
from rabbit_ai.cache.user_cache import UserCache
from rabbit_ai.core.models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache usage.

    total_keys and memory_usage come from Redis; hits, misses and hit_rate
    are counted by this process only.
    """

    total_keys: int
    memory_usage: int
    hits: int
    misses: int
    hit_rate: float
    last_updated: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_keys": self.total_keys,
            "memory_usage": self.memory_usage,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate, 4),
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class BatchReport:
    """Per-item outcomes of a bulk cache operation."""

    effects: tuple[CacheEffect, ...] = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return len(self.effects)

    @property
    def succeeded(self) -> int:
        return sum(1 for effect in self.effects if effect.ok)

    @property
    def failed_keys(self) -> list[str]:
        return [effect.key for effect in self.effects if not effect.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed_keys,
        }


class CacheManager:
    """Cache administration over a UserCache and its Redis store."""

    def __init__(self, user_cache: UserCache, store: RedisCache):
        self.user_cache = user_cache
        self.store = store

    async def get_stats(self) -> CacheStats:
        """Collect key count, memory usage and this process's hit rate."""
        counters = self.store.counters
        return CacheStats(
            total_keys=await self.store.key_count(),
            memory_usage=await self.store.memory_usage(),
            hits=counters.hits,
            misses=counters.misses,
            hit_rate=counters.hit_rate,
            last_updated=datetime.now(timezone.utc),
        )

    async def health_check(self) -> None:
        """Ping the cache; raises CacheConnectionError if it is down."""
        await self.store.ping()

    async def _set_each(self, users: list[User], operation: str) -> BatchReport:
        effects = []
        for user in users:
            key = CacheKeys.user(user.id) if user.id is not None else "user:?"
            effects.append(await best_effort(operation, key, self.user_cache.set(user)))
        return BatchReport(tuple(effects))

    async def warm_up(self, users: Iterable[User]) -> BatchReport:
        """Preload a batch of users into the cache."""
        batch = list(users)
        logger.info("Starting cache warm-up for %d users", len(batch))
        report = await self._set_each(batch, "warm_up")
        logger.info(
            "Cache warm-up completed for %d users (%d failed)",
            report.total,
            report.total - report.succeeded,
        )
        return report

    async def batch_set_users(self, users: Iterable[User]) -> BatchReport:
        """Cache a batch of users, continuing past individual failures."""
        batch = list(users)
        logger.info("Batch setting cache for %d users", len(batch))
        return await self._set_each(batch, "batch_set")

    async def batch_delete_users(self, user_ids: Iterable[int]) -> BatchReport:
        """Delete a batch of cached users, continuing past individual failures."""
        ids = list(user_ids)
        logger.info("Batch deleting cache for %d users", len(ids))
        effects = []
        for user_id in ids:
            key = CacheKeys.user(user_id)
            effects.append(await best_effort("batch_delete", key, self.user_cache.delete(user_id)))
        return BatchReport(tuple(effects))

    async def refresh_user(self, user: User) -> None:
        """Replace a user's cache entry.

        A failed delete of the old entry is only logged; a failed set raises.
        """
        if user.id is not None:
            key = CacheKeys.user(user.id)
            await best_effort("refresh_delete", key, self.user_cache.delete(user.id))
        await self.user_cache.set(user)
        logger.info("Refreshed cache for user %s", user.id)

    async def clear_all_users(self) -> int:
        """Delete every `user:*` entry. Returns the number of keys removed."""
        logger.info("Clearing all user cache entries")
        deleted = await self.store.delete_pattern(CacheKeys.pattern("user"))
        logger.info("Cleared %d user cache entries", deleted)
        return deleted
