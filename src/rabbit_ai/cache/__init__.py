"""Cache layer for the Rabbit AI service.

Redis read-through / write-through caching in front of the relational store:
- Typed caches for users, conversations, messages and list snapshots
- Deterministic prefix + ID keys with per-kind TTLs
- Best-effort side effects reported through Outcome / CacheEffect
- Administrative bulk operations, health and stats
"""

from rabbit_ai.cache.conversation_cache import ConversationCache
from rabbit_ai.cache.effects import CacheEffect, Outcome, best_effort
from rabbit_ai.cache.keys import CacheKeys, CacheTTLs
from rabbit_ai.cache.manager import BatchReport, CacheManager, CacheStats
from rabbit_ai.cache.redis import RedisCache, create_redis
from rabbit_ai.cache.user_cache import UserCache

__all__ = [
    # Core cache
    "CacheKeys",
    "CacheTTLs",
    "RedisCache",
    "create_redis",
    # Typed caches
    "UserCache",
    "ConversationCache",
    # Side effects
    "CacheEffect",
    "Outcome",
    "best_effort",
    # Administration
    "CacheManager",
    "CacheStats",
    "BatchReport",
]
