"""Redis key-value client for the cache layer.

Thin wrapper over the redis-py async client: get/set/delete/ping with TTL.
A miss is returned as None and is never conflated with an error; every
Redis failure surfaces as CacheConnectionError so callers choose the policy.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass
from typing import TYPE_CHECKING, cast

import redis.asyncio as redis
from redis.exceptions import RedisError

from rabbit_ai.cache.keys import CacheKeys
from rabbit_ai.core.errors import CacheConnectionError
from rabbit_ai.observability.metrics import (
    record_cache_hit,
    record_cache_miss,
    record_cache_operation,
)

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


def create_redis(url: str) -> Redis:
    """Create a pooled Redis client.

    Called once at process start; the client is passed to every cache
    component explicitly.
    """
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=False,  # Values are stored as JSON bytes
    )


@dataclass
class CacheCounters:
    """In-process hit/miss counters for this client."""

    hits: int = 0
    misses: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class RedisCache:
    """Key-value operations with TTL over a Redis client."""

    def __init__(self, client: Redis):
        self.client = client
        self.counters = CacheCounters()

    @staticmethod
    def _entity(key: str) -> str:
        parsed = CacheKeys.parse_key(key)
        return parsed[0] if parsed else "other"

    async def get(self, key: str) -> bytes | None:
        """Get the raw value stored under key.

        Returns:
            The stored bytes, or None on a miss.

        Raises:
            CacheConnectionError: If Redis could not be queried.
        """
        start = time.perf_counter()
        try:
            value = cast(bytes | None, await self.client.get(key))
        except RedisError as e:
            raise CacheConnectionError(f"Failed to get {key} from cache: {e}") from e
        finally:
            record_cache_operation("get", time.perf_counter() - start)

        if value is None:
            self.counters.misses += 1
            record_cache_miss(self._entity(key))
            logger.debug("Cache miss: %s", key)
        else:
            self.counters.hits += 1
            record_cache_hit(self._entity(key))
            logger.debug("Cache hit: %s", key)
        return value

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        """Store value under key with a TTL in seconds."""
        start = time.perf_counter()
        try:
            await self.client.set(key, value, ex=ttl)
        except RedisError as e:
            raise CacheConnectionError(f"Failed to set {key} in cache: {e}") from e
        finally:
            record_cache_operation("set", time.perf_counter() - start)

    async def delete(self, *keys: str) -> int:
        """Delete keys. Deleting an absent key is a no-op.

        Returns:
            Number of keys that existed and were removed.
        """
        if not keys:
            return 0
        start = time.perf_counter()
        try:
            return cast(int, await self.client.delete(*keys))
        except RedisError as e:
            raise CacheConnectionError(f"Failed to delete {', '.join(keys)}: {e}") from e
        finally:
            record_cache_operation("delete", time.perf_counter() - start)

    async def ping(self) -> None:
        """Check Redis connectivity.

        Raises:
            CacheConnectionError: If Redis does not answer.
        """
        try:
            await cast(Awaitable[bool], self.client.ping())
        except RedisError as e:
            raise CacheConnectionError(f"Cache ping failed: {e}") from e

    async def health_check(self) -> bool:
        """Return True if Redis answers a PING."""
        try:
            await self.ping()
            return True
        except CacheConnectionError:
            return False

    async def scan_keys(self, pattern: str) -> AsyncIterator[str]:
        """Iterate keys matching a glob pattern.

        Uses SCAN to avoid blocking on large keyspaces.
        """
        try:
            async for key in self.client.scan_iter(match=pattern, count=500):
                yield key.decode() if isinstance(key, bytes) else key
        except RedisError as e:
            raise CacheConnectionError(f"Failed to scan {pattern}: {e}") from e

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching pattern.

        Returns the number of keys deleted.
        """
        deleted = 0
        async for key in self.scan_keys(pattern):
            deleted += await self.delete(key)
        return deleted

    async def key_count(self) -> int:
        """Number of keys in the selected database."""
        try:
            return cast(int, await self.client.dbsize())
        except RedisError as e:
            raise CacheConnectionError(f"Failed to read key count: {e}") from e

    async def memory_usage(self) -> int:
        """Bytes of memory used by Redis, as reported by INFO memory."""
        try:
            info = await self.client.info("memory")
        except RedisError as e:
            raise CacheConnectionError(f"Failed to read memory info: {e}") from e
        return int(info.get("used_memory", 0))

    async def close(self) -> None:
        """Close Redis connections."""
        await self.client.aclose()
