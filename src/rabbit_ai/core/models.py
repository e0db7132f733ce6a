"""Domain entities shared by the cache, persistence and service layers.

Field names match the JSON documents already stored in Redis by earlier
deployments (`id`, `user_id`, `last_message_at`, ...), so existing cache
entries stay readable.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

# Placeholder title given to conversations created without one
DEFAULT_CONVERSATION_TITLE = "新对话"


class UserStatus(IntEnum):
    """Account status."""

    DISABLED = 0
    ACTIVE = 1


class ConversationStatus(IntEnum):
    """Conversation lifecycle status (0 = soft-deleted)."""

    DELETED = 0
    ACTIVE = 1


class MessageRole(str, Enum):
    """Author of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Platform(str, Enum):
    """Normalized client platform tags."""

    IOS = "ios"
    ANDROID = "android"
    BROWSER = "browser"


class _Entity(BaseModel):
    model_config = ConfigDict(from_attributes=True, validate_assignment=True)


class User(_Entity):
    """Identity record.

    `password_hash` is part of the full field set written to the cache, so
    the API layer must always render users through `public_dict()`.
    """

    id: int | None = None
    phone: str | None = None
    password_hash: str | None = None
    nickname: str = ""
    avatar: str = ""
    status: UserStatus = UserStatus.ACTIVE
    github_id: str | None = None
    email: str | None = None
    device_id: str | None = None
    platform: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def public_dict(self) -> dict[str, Any]:
        """JSON-ready representation without credentials."""
        return self.model_dump(mode="json", exclude={"password_hash"})


class Conversation(_Entity):
    """A chat session owned by one user."""

    id: int | None = None
    user_id: int
    title: str = ""
    status: ConversationStatus = ConversationStatus.ACTIVE
    message_count: int = 0
    last_message_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ConversationStatus.ACTIVE


class Message(_Entity):
    """One conversation turn. Immutable once created."""

    id: int | None = None
    conversation_id: int
    role: MessageRole
    content: str
    tokens: int = 0
    model: str = ""
    finish_reason: str = ""
    created_at: datetime | None = None
