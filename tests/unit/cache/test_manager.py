"""Tests for cache administration."""

import pytest

from rabbit_ai.cache.keys import CacheKeys
from rabbit_ai.cache.manager import CacheManager
from rabbit_ai.cache.redis import RedisCache
from rabbit_ai.cache.user_cache import UserCache
from rabbit_ai.core.errors import CacheConnectionError
from rabbit_ai.core.models import User
from tests.fakes import FakeRedis


@pytest.fixture
def manager(user_cache: UserCache, store: RedisCache) -> CacheManager:
    return CacheManager(user_cache, store)


def users(*ids: int) -> list[User]:
    return [User(id=user_id, nickname=f"u{user_id}") for user_id in ids]


class TestStats:
    @pytest.mark.asyncio
    async def test_stats(self, manager: CacheManager, user_cache: UserCache) -> None:
        await user_cache.set(users(1)[0])
        await user_cache.get(1)
        await user_cache.get(2)

        stats = await manager.get_stats()

        assert stats.total_keys == 1
        assert stats.memory_usage == 1024
        assert (stats.hits, stats.misses) == (1, 1)
        assert stats.hit_rate == 0.5
        assert stats.to_dict()["hit_rate"] == 0.5

    @pytest.mark.asyncio
    async def test_health_check(self, manager: CacheManager, fake_redis: FakeRedis) -> None:
        await manager.health_check()
        fake_redis.fail_ops.add("ping")

        with pytest.raises(CacheConnectionError):
            await manager.health_check()


class TestBatches:
    @pytest.mark.asyncio
    async def test_warm_up(self, manager: CacheManager, fake_redis: FakeRedis) -> None:
        report = await manager.warm_up(users(1, 2, 3))

        assert (report.total, report.succeeded) == (3, 3)
        assert set(fake_redis.data) == {"user:1", "user:2", "user:3"}

    @pytest.mark.asyncio
    async def test_batch_set_continues_past_failures(
        self, manager: CacheManager, fake_redis: FakeRedis
    ) -> None:
        fake_redis.fail_ops.add("set")

        report = await manager.batch_set_users(users(1, 2))

        assert report.total == 2
        assert report.succeeded == 0
        assert report.failed_keys == ["user:1", "user:2"]

    @pytest.mark.asyncio
    async def test_batch_delete(self, manager: CacheManager, fake_redis: FakeRedis) -> None:
        await manager.batch_set_users(users(1, 2, 3))

        report = await manager.batch_delete_users([1, 3])

        assert report.succeeded == 2
        assert set(fake_redis.data) == {"user:2"}
        assert report.to_dict() == {"total": 2, "succeeded": 2, "failed": []}


class TestRefreshAndClear:
    @pytest.mark.asyncio
    async def test_refresh_replaces_entry(
        self, manager: CacheManager, user_cache: UserCache
    ) -> None:
        await user_cache.set(User(id=1, nickname="old"))

        await manager.refresh_user(User(id=1, nickname="new"))

        assert (await user_cache.get(1)).nickname == "new"

    @pytest.mark.asyncio
    async def test_refresh_tolerates_failed_delete(
        self, manager: CacheManager, fake_redis: FakeRedis
    ) -> None:
        fake_redis.fail_ops.add("delete")

        await manager.refresh_user(User(id=1, nickname="new"))

        assert CacheKeys.user(1) in fake_redis.data

    @pytest.mark.asyncio
    async def test_refresh_raises_on_failed_set(
        self, manager: CacheManager, fake_redis: FakeRedis
    ) -> None:
        fake_redis.fail_ops.add("set")

        with pytest.raises(CacheConnectionError):
            await manager.refresh_user(User(id=1))

    @pytest.mark.asyncio
    async def test_clear_all_users_leaves_other_kinds(
        self, manager: CacheManager, fake_redis: FakeRedis
    ) -> None:
        await manager.batch_set_users(users(1, 2))
        fake_redis.data["user_conversations:1"] = b"[]"
        fake_redis.data["conversation:1"] = b"{}"

        deleted = await manager.clear_all_users()

        assert deleted == 2
        assert set(fake_redis.data) == {"user_conversations:1", "conversation:1"}
