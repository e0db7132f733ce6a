"""Tests for device-based identity."""

import pytest

from rabbit_ai.core.errors import DeviceAlreadyBoundError, UserNotFoundError, ValidationError
from rabbit_ai.core.models import User
from rabbit_ai.persistence.cached import CachedUserRepository
from rabbit_ai.services.device import (
    DeviceService,
    extract_device_id,
    extract_platform,
    normalize_platform,
)

IPHONE_UA = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15"


class TestExtractDeviceId:
    def test_header_precedence(self) -> None:
        headers = {"Client-ID": "client", "X-Device-ID": "device"}
        assert extract_device_id(headers) == "device"

    def test_lowercase_headers(self) -> None:
        assert extract_device_id({"x-client-id": " abc "}) == "abc"

    def test_user_agent_fallback(self) -> None:
        assert extract_device_id({"User-Agent": IPHONE_UA}) == "ua_" + IPHONE_UA[:50]

    def test_nothing(self) -> None:
        assert extract_device_id({}) == ""


class TestExtractPlatform:
    @pytest.mark.parametrize(
        "value, platform",
        [("iPhone", "ios"), ("Android", "android"), ("h5", "browser"), ("Harmony", "harmony")],
    )
    def test_normalize(self, value: str, platform: str) -> None:
        assert normalize_platform(value) == platform

    def test_explicit_header(self) -> None:
        assert extract_platform({"X-Platform": "WEB", "User-Agent": IPHONE_UA}) == "browser"

    @pytest.mark.parametrize(
        "user_agent, platform",
        [
            (IPHONE_UA, "ios"),
            ("Mozilla/5.0 (Linux; Android 14; Pixel 8)", "android"),
            ("Mozilla/5.0 (Windows NT 10.0; Win64; x64)", "browser"),
            ("curl/8.4.0", ""),
        ],
    )
    def test_guessed_from_user_agent(self, user_agent: str, platform: str) -> None:
        assert extract_platform({"User-Agent": user_agent}) == platform


class TestDeviceService:
    @pytest.fixture
    def service(self, cached_users: CachedUserRepository) -> DeviceService:
        return DeviceService(cached_users)

    @pytest.mark.asyncio
    async def test_get_or_create(self, service: DeviceService) -> None:
        user, created = await service.get_or_create_user("device-123456789", "ios")
        again, created_again = await service.get_or_create_user("device-123456789", "ios")

        assert created and not created_again
        assert again.id == user.id
        assert user.nickname == "设备用户_device-1"
        assert user.platform == "ios"

    @pytest.mark.asyncio
    async def test_requires_device_id(self, service: DeviceService) -> None:
        with pytest.raises(ValidationError):
            await service.get_or_create_user("")

    @pytest.mark.asyncio
    async def test_lookup(self, service: DeviceService) -> None:
        user, _ = await service.get_or_create_user("dev-1")

        assert (await service.get_user_by_device_id("dev-1")).id == user.id
        with pytest.raises(UserNotFoundError):
            await service.get_user_by_device_id("dev-unknown")

    @pytest.mark.asyncio
    async def test_bind_and_unbind(
        self, service: DeviceService, cached_users: CachedUserRepository
    ) -> None:
        member = await cached_users.create(User(phone="13800000001"))

        bound = await service.bind_device(member.id, "dev-9")
        assert bound.device_id == "dev-9"
        assert (await service.get_user_by_device_id("dev-9")).id == member.id

        # Binding the same device again is a no-op
        await service.bind_device(member.id, "dev-9")

        unbound = await service.unbind_device(member.id)
        assert unbound.device_id is None
        assert (await cached_users.get_by_id(member.id)).device_id is None

    @pytest.mark.asyncio
    async def test_bind_conflict(
        self, service: DeviceService, cached_users: CachedUserRepository
    ) -> None:
        holder, _ = await service.get_or_create_user("dev-taken")
        member = await cached_users.create(User(phone="13800000001"))

        with pytest.raises(DeviceAlreadyBoundError):
            await service.bind_device(member.id, "dev-taken")
        assert (await service.get_user_by_device_id("dev-taken")).id == holder.id

    @pytest.mark.asyncio
    async def test_bind_unknown_user(self, service: DeviceService) -> None:
        with pytest.raises(UserNotFoundError):
            await service.bind_device(404, "dev-1")
