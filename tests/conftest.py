"""Global pytest fixtures: an in-process Redis, caches and repositories."""

from __future__ import annotations

import pytest

from rabbit_ai.cache.conversation_cache import ConversationCache
from rabbit_ai.cache.redis import RedisCache
from rabbit_ai.cache.user_cache import UserCache
from rabbit_ai.persistence.cached import CachedUserRepository
from rabbit_ai.persistence.memory import (
    InMemoryConversationRepository,
    InMemoryMessageRepository,
    InMemoryUserRepository,
)
from tests.fakes import TEST_PASSWORD_ROUNDS, FakeRedis


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(fake_redis: FakeRedis) -> RedisCache:
    return RedisCache(fake_redis)  # type: ignore[arg-type]


@pytest.fixture
def user_cache(store: RedisCache) -> UserCache:
    return UserCache(store)


@pytest.fixture
def conversation_cache(store: RedisCache) -> ConversationCache:
    return ConversationCache(store)


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository(password_rounds=TEST_PASSWORD_ROUNDS)


@pytest.fixture
def conversation_repo() -> InMemoryConversationRepository:
    return InMemoryConversationRepository()


@pytest.fixture
def message_repo() -> InMemoryMessageRepository:
    return InMemoryMessageRepository()


@pytest.fixture
def cached_users(user_repo: InMemoryUserRepository, user_cache: UserCache) -> CachedUserRepository:
    return CachedUserRepository(user_repo, user_cache)
