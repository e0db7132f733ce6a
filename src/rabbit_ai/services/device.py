"""Device-based identity: one anonymous user per device ID."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from rabbit_ai.core.errors import DeviceAlreadyBoundError, UserNotFoundError, ValidationError
from rabbit_ai.core.models import Platform, User
from rabbit_ai.persistence.repositories import UserRepository

logger = logging.getLogger(__name__)

# Checked in order; header lookups are case-insensitive
DEVICE_ID_HEADERS = ("X-Device-ID", "Device-ID", "X-Client-ID", "Client-ID", "X-User-Agent")
PLATFORM_HEADERS = ("X-Platform", "Platform")
USER_AGENT_PREFIX_CHARS = 50

_PLATFORM_ALIASES = {
    "ios": Platform.IOS,
    "iphone": Platform.IOS,
    "android": Platform.ANDROID,
    "browser": Platform.BROWSER,
    "web": Platform.BROWSER,
    "h5": Platform.BROWSER,
}


def _header(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower(), "")
    return value.strip()


def normalize_platform(value: str) -> str:
    """Map client spellings onto ios / android / browser; pass others through lowercased."""
    value = value.strip().lower()
    platform = _PLATFORM_ALIASES.get(value)
    return platform.value if platform else value


def extract_device_id(headers: Mapping[str, str]) -> str:
    """Device ID from the first known header, else derived from User-Agent."""
    for name in DEVICE_ID_HEADERS:
        value = _header(headers, name)
        if value:
            return value
    user_agent = _header(headers, "User-Agent")
    if user_agent:
        return "ua_" + user_agent[:USER_AGENT_PREFIX_CHARS]
    return ""


def extract_platform(headers: Mapping[str, str]) -> str:
    """Platform from an explicit header, else guessed from User-Agent."""
    for name in PLATFORM_HEADERS:
        value = _header(headers, name)
        if value:
            return normalize_platform(value)

    user_agent = _header(headers, "User-Agent").lower()
    if not user_agent:
        return ""
    if "iphone" in user_agent or "ios" in user_agent:
        return Platform.IOS.value
    if "android" in user_agent:
        return Platform.ANDROID.value
    if any(os_name in user_agent for os_name in ("windows", "macintosh", "linux")):
        return Platform.BROWSER.value
    return ""


class DeviceService:
    def __init__(self, users: UserRepository):
        self.users = users

    async def get_or_create_user(self, device_id: str, platform: str = "") -> tuple[User, bool]:
        """Return the device's user, creating it on first sight.

        Returns:
            (user, created)
        """
        if not device_id:
            raise ValidationError("Device ID is required")
        user = await self.users.get_by_device_id(device_id)
        if user is not None:
            return user, False

        user = await self.users.create(
            User(device_id=device_id, platform=platform, nickname=f"设备用户_{device_id[:8]}")
        )
        logger.info(
            "Created user %s for device %s (platform %s)", user.id, device_id, platform or "-"
        )
        return user, True

    async def get_user_by_device_id(self, device_id: str) -> User:
        user = await self.users.get_by_device_id(device_id)
        if user is None:
            raise UserNotFoundError(device_id)
        return user

    async def bind_device(self, user_id: int, device_id: str) -> User:
        """Attach a device ID to a user; fails if another user already holds it."""
        if not device_id:
            raise ValidationError("Device ID is required")
        holder = await self.users.get_by_device_id(device_id)
        if holder is not None and holder.id != user_id:
            raise DeviceAlreadyBoundError(device_id)
        return await self._set_device_id(user_id, device_id)

    async def unbind_device(self, user_id: int) -> User:
        return await self._set_device_id(user_id, None)

    async def _set_device_id(self, user_id: int, device_id: str | None) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        updated = await self.users.update(user.model_copy(update={"device_id": device_id}))
        logger.info("Device for user %s set to %s", user_id, device_id or "-")
        return updated
