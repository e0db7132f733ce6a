"""In-process repositories.

Dict-backed implementations of the repository interfaces with the same
ordering and not-found semantics as the SQL ones. Used for tests and for
running the API without a database. Entities are copied on the way in and
on the way out, so callers never share state with the store.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone

from rabbit_ai.core.errors import (
    ConflictError,
    ConversationNotFoundError,
    InvalidCredentialsError,
    MessageNotFoundError,
    UserNotFoundError,
)
from rabbit_ai.core.models import Conversation, ConversationStatus, Message, User
from rabbit_ai.security.passwords import DEFAULT_ROUNDS, hash_password, verify_password


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryUserRepository:
    _UNIQUE_FIELDS = ("phone", "github_id", "device_id")

    def __init__(self, password_rounds: int = DEFAULT_ROUNDS):
        self.password_rounds = password_rounds
        self._rows: dict[int, User] = {}
        self._ids = itertools.count(1)

    def _check_unique(self, user: User) -> None:
        for field_name in self._UNIQUE_FIELDS:
            value = getattr(user, field_name)
            if value is None:
                continue
            for other in self._rows.values():
                if other.id != user.id and getattr(other, field_name) == value:
                    raise ConflictError("User phone, GitHub ID or device ID is already taken")

    def _find(self, field_name: str, value: object) -> User | None:
        for row in self._rows.values():
            if getattr(row, field_name) == value:
                return row.model_copy()
        return None

    async def create(self, user: User) -> User:
        self._check_unique(user.model_copy(update={"id": None}))
        now = _now()
        row = user.model_copy(update={"id": next(self._ids), "created_at": now, "updated_at": now})
        self._rows[row.id] = row
        return row.model_copy()

    async def create_with_password(self, user: User, password: str) -> User:
        hashed = hash_password(password, self.password_rounds)
        return await self.create(user.model_copy(update={"password_hash": hashed}))

    async def get_by_id(self, user_id: int) -> User | None:
        row = self._rows.get(user_id)
        return row.model_copy() if row is not None else None

    async def get_by_phone(self, phone: str) -> User | None:
        return self._find("phone", phone)

    async def get_by_github_id(self, github_id: str) -> User | None:
        return self._find("github_id", github_id)

    async def get_by_email(self, email: str) -> User | None:
        return self._find("email", email)

    async def get_by_device_id(self, device_id: str) -> User | None:
        return self._find("device_id", device_id)

    async def update(self, user: User) -> User:
        existing = self._rows.get(user.id) if user.id is not None else None
        if existing is None:
            raise UserNotFoundError(user.id)
        self._check_unique(user)
        row = user.model_copy(
            update={
                "password_hash": existing.password_hash,
                "created_at": existing.created_at,
                "updated_at": _now(),
            }
        )
        self._rows[row.id] = row
        return row.model_copy()

    async def update_password(self, user_id: int, new_password: str) -> None:
        existing = self._rows.get(user_id)
        if existing is None:
            raise UserNotFoundError(user_id)
        self._rows[user_id] = existing.model_copy(
            update={
                "password_hash": hash_password(new_password, self.password_rounds),
                "updated_at": _now(),
            }
        )

    async def delete(self, user_id: int) -> None:
        if self._rows.pop(user_id, None) is None:
            raise UserNotFoundError(user_id)

    async def verify_password(self, phone: str, password: str) -> User:
        user = self._find("phone", phone)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        return user

    async def list_users(self, limit: int, offset: int = 0) -> list[User]:
        rows = sorted(self._rows.values(), key=lambda u: u.id or 0)
        return [row.model_copy() for row in rows[offset : offset + limit]]


class InMemoryConversationRepository:
    def __init__(self) -> None:
        self._rows: dict[int, Conversation] = {}
        self._ids = itertools.count(1)

    async def create(self, conversation: Conversation) -> Conversation:
        now = _now()
        row = conversation.model_copy(
            update={
                "id": next(self._ids),
                "last_message_at": conversation.last_message_at or now,
                "created_at": now,
                "updated_at": now,
            }
        )
        self._rows[row.id] = row
        return row.model_copy()

    async def get_by_id(self, conversation_id: int) -> Conversation | None:
        row = self._rows.get(conversation_id)
        if row is None or not row.is_active:
            return None
        return row.model_copy()

    async def get_by_user_id(
        self, user_id: int, limit: int, offset: int = 0
    ) -> list[Conversation]:
        rows = [r for r in self._rows.values() if r.user_id == user_id and r.is_active]
        rows.sort(key=lambda r: (r.last_message_at, r.id), reverse=True)
        return [row.model_copy() for row in rows[offset : offset + limit]]

    async def update(self, conversation: Conversation) -> Conversation:
        existing = self._rows.get(conversation.id) if conversation.id is not None else None
        if existing is None or not existing.is_active:
            raise ConversationNotFoundError(conversation.id)
        row = conversation.model_copy(
            update={
                "user_id": existing.user_id,
                "status": existing.status,
                "last_message_at": conversation.last_message_at or _now(),
                "created_at": existing.created_at,
                "updated_at": _now(),
            }
        )
        self._rows[row.id] = row
        return row.model_copy()

    async def delete(self, conversation_id: int) -> None:
        existing = self._rows.get(conversation_id)
        if existing is None:
            raise ConversationNotFoundError(conversation_id)
        self._rows[conversation_id] = existing.model_copy(
            update={"status": ConversationStatus.DELETED, "updated_at": _now()}
        )

    async def get_user_conversation_count(self, user_id: int) -> int:
        return sum(1 for r in self._rows.values() if r.user_id == user_id and r.is_active)


class InMemoryMessageRepository:
    def __init__(self) -> None:
        self._rows: dict[int, Message] = {}
        self._ids = itertools.count(1)

    def _ordered(self, conversation_id: int) -> list[Message]:
        rows = [r for r in self._rows.values() if r.conversation_id == conversation_id]
        rows.sort(key=lambda r: (r.created_at, r.id))
        return rows

    async def create(self, message: Message) -> Message:
        row = message.model_copy(update={"id": next(self._ids), "created_at": _now()})
        self._rows[row.id] = row
        return row.model_copy()

    async def get_by_id(self, message_id: int) -> Message | None:
        row = self._rows.get(message_id)
        return row.model_copy() if row is not None else None

    async def get_by_conversation_id(
        self, conversation_id: int, limit: int, offset: int = 0
    ) -> list[Message]:
        rows = self._ordered(conversation_id)[offset : offset + limit]
        return [row.model_copy() for row in rows]

    async def get_conversation_messages(self, conversation_id: int) -> list[Message]:
        return [row.model_copy() for row in self._ordered(conversation_id)]

    async def update(self, message: Message) -> Message:
        existing = self._rows.get(message.id) if message.id is not None else None
        if existing is None:
            raise MessageNotFoundError(message.id)
        row = message.model_copy(
            update={
                "conversation_id": existing.conversation_id,
                "role": existing.role,
                "created_at": existing.created_at,
            }
        )
        self._rows[row.id] = row
        return row.model_copy()

    async def delete(self, message_id: int) -> None:
        if self._rows.pop(message_id, None) is None:
            raise MessageNotFoundError(message_id)

    async def get_conversation_message_count(self, conversation_id: int) -> int:
        return sum(1 for r in self._rows.values() if r.conversation_id == conversation_id)
