"""Conversation and message cache.

Four entry shapes, each with its own key prefix and TTL:

| Shape                         | Key                        | TTL    |
|-------------------------------|----------------------------|--------|
| Conversation                  | conversation:<id>          | 30 min |
| Message                       | message:<id>               | 60 min |
| A user's conversation list    | user_conversations:<uid>   | 15 min |
| A conversation's message list | conversation_messages:<id> | 30 min |

Lists are cached as whole snapshots. A change to any member invalidates
(deletes) the snapshot; snapshots are never patched in place.
"""

from __future__ import annotations

from typing import Any, TypeVar

import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from rabbit_ai.cache.keys import CacheKeys, CacheTTLs
from rabbit_ai.cache.redis import RedisCache
from rabbit_ai.core.errors import CacheSerializationError
from rabbit_ai.core.models import Conversation, Message

M = TypeVar("M", bound=BaseModel)

_conversation_list = TypeAdapter(list[Conversation])
_message_list = TypeAdapter(list[Message])


def _encode(key: str, payload: Any) -> bytes:
    try:
        return orjson.dumps(payload)
    except (TypeError, orjson.JSONEncodeError) as e:
        raise CacheSerializationError(f"Failed to encode {key}: {e}") from e


def _require_id(entity: Conversation | Message) -> int:
    if entity.id is None:
        raise CacheSerializationError(f"Cannot cache an unsaved {type(entity).__name__}")
    return entity.id


class ConversationCache:
    """Typed cache operations for conversations, messages and their lists."""

    def __init__(self, store: RedisCache, ttls: CacheTTLs | None = None):
        self.store = store
        self.ttls = ttls or CacheTTLs()

    # -------------------------------------------------------------------------
    # Generic helpers
    # -------------------------------------------------------------------------

    async def _get_entity(self, key: str, model: type[M]) -> M | None:
        raw = await self.store.get(key)
        if raw is None:
            return None
        try:
            return model.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            raise CacheSerializationError(f"Corrupt cache entry {key}: {e}") from e

    async def _get_list(self, key: str, adapter: TypeAdapter[list[M]]) -> list[M] | None:
        raw = await self.store.get(key)
        if raw is None:
            return None
        try:
            return adapter.validate_python(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as e:
            raise CacheSerializationError(f"Corrupt cache entry {key}: {e}") from e

    # -------------------------------------------------------------------------
    # Conversation
    # -------------------------------------------------------------------------

    async def set_conversation(self, conversation: Conversation) -> None:
        key = CacheKeys.conversation(_require_id(conversation))
        data = _encode(key, conversation.model_dump(mode="json"))
        await self.store.set(key, data, self.ttls.conversation)

    async def get_conversation(self, conversation_id: int) -> Conversation | None:
        return await self._get_entity(CacheKeys.conversation(conversation_id), Conversation)

    async def delete_conversation(self, conversation_id: int) -> None:
        await self.store.delete(CacheKeys.conversation(conversation_id))

    # -------------------------------------------------------------------------
    # Message
    # -------------------------------------------------------------------------

    async def set_message(self, message: Message) -> None:
        key = CacheKeys.message(_require_id(message))
        data = _encode(key, message.model_dump(mode="json"))
        await self.store.set(key, data, self.ttls.message)

    async def get_message(self, message_id: int) -> Message | None:
        return await self._get_entity(CacheKeys.message(message_id), Message)

    async def delete_message(self, message_id: int) -> None:
        await self.store.delete(CacheKeys.message(message_id))

    # -------------------------------------------------------------------------
    # A user's conversation list
    # -------------------------------------------------------------------------

    async def set_user_conversations(
        self, user_id: int, conversations: list[Conversation]
    ) -> None:
        key = CacheKeys.user_conversations(user_id)
        data = _encode(key, [c.model_dump(mode="json") for c in conversations])
        await self.store.set(key, data, self.ttls.user_conversations)

    async def get_user_conversations(self, user_id: int) -> list[Conversation] | None:
        """Cached snapshot, or None on a miss. An empty list is a hit."""
        return await self._get_list(CacheKeys.user_conversations(user_id), _conversation_list)

    async def delete_user_conversations(self, user_id: int) -> None:
        await self.store.delete(CacheKeys.user_conversations(user_id))

    # -------------------------------------------------------------------------
    # A conversation's message list
    # -------------------------------------------------------------------------

    async def set_conversation_messages(
        self, conversation_id: int, messages: list[Message]
    ) -> None:
        key = CacheKeys.conversation_messages(conversation_id)
        data = _encode(key, [m.model_dump(mode="json") for m in messages])
        await self.store.set(key, data, self.ttls.conversation_messages)

    async def get_conversation_messages(self, conversation_id: int) -> list[Message] | None:
        """Cached snapshot, or None on a miss. An empty list is a hit."""
        return await self._get_list(CacheKeys.conversation_messages(conversation_id), _message_list)

    async def delete_conversation_messages(self, conversation_id: int) -> None:
        await self.store.delete(CacheKeys.conversation_messages(conversation_id))

    # -------------------------------------------------------------------------
    # Composite invalidation
    # -------------------------------------------------------------------------

    async def invalidate_conversation(self, conversation_id: int) -> None:
        """Drop the conversation entry, then its message-list snapshot.

        The first failing delete aborts the sequence and propagates.
        """
        await self.delete_conversation(conversation_id)
        await self.delete_conversation_messages(conversation_id)

    async def invalidate_user(self, user_id: int) -> None:
        """Drop the user's conversation-list snapshot.

        The User entity itself belongs to UserCache and is left alone.
        """
        await self.delete_user_conversations(user_id)

    async def ping(self) -> None:
        await self.store.ping()
