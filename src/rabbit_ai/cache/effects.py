"""Result types for best-effort cache side effects.

Every cache write, refresh or invalidation that follows a durable-store
operation is secondary: its failure is logged and reported, never raised.
`Outcome` carries the primary result together with the outcome of each
secondary cache effect, so callers and tests can tell them apart.

Example:
    effect = await best_effort("set_user", CacheKeys.user(42), cache.set(user))
    return Outcome(user, (effect,))
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from rabbit_ai.core.errors import CacheError
from rabbit_ai.observability.metrics import record_cache_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEffect:
    """Outcome of one secondary cache operation."""

    operation: str
    key: str
    error: CacheError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Primary operation result plus its secondary cache effects."""

    value: T
    effects: tuple[CacheEffect, ...] = field(default_factory=tuple)

    @property
    def cache_ok(self) -> bool:
        """True if every secondary cache effect succeeded."""
        return all(effect.ok for effect in self.effects)

    @property
    def failed_effects(self) -> tuple[CacheEffect, ...]:
        return tuple(effect for effect in self.effects if not effect.ok)


async def best_effort(operation: str, key: str, action: Awaitable[Any]) -> CacheEffect:
    """Await a cache action, converting CacheError into a failed effect.

    Only cache-layer failures are absorbed; any other exception propagates.
    """
    try:
        await action
    except CacheError as e:
        logger.warning("Cache %s failed for %s: %s", operation, key, e)
        record_cache_error(operation)
        return CacheEffect(operation, key, e)
    return CacheEffect(operation, key)
