"""Conversation service: conversations, message history and AI replies.

Every use case follows the same cache discipline:
- the durable store is read or written first and is authoritative;
- cache writes and invalidations that follow are best-effort, reported as
  CacheEffect entries on the result and never raised;
- cache read errors count as misses.

List snapshots are only read and written for the first page (offset 0).
A snapshot shorter than the requested limit is only served if it already
holds every row.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar

from rabbit_ai.cache.conversation_cache import ConversationCache
from rabbit_ai.cache.effects import CacheEffect, best_effort
from rabbit_ai.cache.keys import CacheKeys
from rabbit_ai.chat.models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    EmptyChatResponseError,
)
from rabbit_ai.core.errors import (
    CacheError,
    ConversationAccessDeniedError,
    ConversationNotFoundError,
    MessageNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from rabbit_ai.core.models import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    Message,
    MessageRole,
)
from rabbit_ai.observability.metrics import record_cache_error
from rabbit_ai.persistence.repositories import (
    ConversationRepository,
    MessageRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONVERSATION_LIMIT = 20
DEFAULT_MESSAGE_LIMIT = 50
TITLE_MAX_CHARS = 20

REPLY_MAX_TOKENS = 2048
REPLY_TEMPERATURE = 0.7


class ChatCompleter(Protocol):
    async def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse: ...


def derive_title(content: str) -> str:
    """Title from the first user message: trimmed, 20 characters, '...' if cut."""
    title = content.strip()
    if len(title) > TITLE_MAX_CHARS:
        return title[:TITLE_MAX_CHARS] + "..."
    return title


def needs_title(conversation: Conversation) -> bool:
    return conversation.title in ("", DEFAULT_CONVERSATION_TITLE)


def normalize_page(limit: int, offset: int, default_limit: int) -> tuple[int, int]:
    """Substitute the default for limit <= 0 and 0 for a negative offset."""
    return (limit if limit > 0 else default_limit, max(offset, 0))


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------


@dataclass
class ConversationResult:
    conversation: Conversation
    cache_effects: tuple[CacheEffect, ...] = ()


@dataclass
class ConversationPage:
    conversations: list[Conversation]
    total: int
    from_cache: bool = False
    cache_effects: tuple[CacheEffect, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversations": [c.model_dump(mode="json") for c in self.conversations],
            "total": self.total,
        }


@dataclass
class MessagePage:
    messages: list[Message]
    total: int
    from_cache: bool = False
    cache_effects: tuple[CacheEffect, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "total": self.total,
        }


@dataclass
class SendMessageResult:
    user_message: Message
    assistant_message: Message
    conversation: Conversation
    usage: dict[str, int] = field(default_factory=dict)
    cache_effects: tuple[CacheEffect, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_message": self.user_message.model_dump(mode="json"),
            "assistant_message": self.assistant_message.model_dump(mode="json"),
            "conversation": self.conversation.model_dump(mode="json"),
        }


# -----------------------------------------------------------------------------
# Service
# -----------------------------------------------------------------------------


class ConversationService:
    def __init__(
        self,
        conversations: ConversationRepository,
        messages: MessageRepository,
        users: UserRepository,
        cache: ConversationCache,
        chat: ChatCompleter,
        default_model: str = "MiniMax-M1",
    ):
        self.conversations = conversations
        self.messages = messages
        self.users = users
        self.cache = cache
        self.chat = chat
        self.default_model = default_model

    # Helpers

    async def _read_cache(
        self,
        operation: str,
        key: str,
        action: Awaitable[T | None],
        effects: list[CacheEffect],
    ) -> T | None:
        """Await a cache read; an error is logged, recorded and read as a miss."""
        try:
            value = await action
        except CacheError as e:
            logger.warning("Cache %s failed for %s, reading from store: %s", operation, key, e)
            record_cache_error(operation)
            effects.append(CacheEffect(operation, key, e))
            return None
        return value

    async def _require_user(self, user_id: int) -> None:
        """Existence is checked against the durable store, not the user cache."""
        if await self.users.get_by_id(user_id) is None:
            raise UserNotFoundError(user_id)

    async def _require_owned(self, conversation_id: int, user_id: int) -> Conversation:
        conversation = await self.conversations.get_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        if conversation.user_id != user_id:
            raise ConversationAccessDeniedError()
        return conversation

    async def _invalidate_after_change(
        self, conversation_id: int, user_id: int
    ) -> list[CacheEffect]:
        return [
            await best_effort(
                "invalidate_conversation",
                CacheKeys.conversation(conversation_id),
                self.cache.invalidate_conversation(conversation_id),
            ),
            await best_effort(
                "invalidate_user_conversations",
                CacheKeys.user_conversations(user_id),
                self.cache.invalidate_user(user_id),
            ),
        ]

    # Use cases

    async def create_conversation(self, user_id: int, title: str = "") -> ConversationResult:
        await self._require_user(user_id)
        conversation = await self.conversations.create(
            Conversation(user_id=user_id, title=title.strip())
        )
        logger.info("Created conversation %s for user %s", conversation.id, user_id)

        effects = [
            await best_effort(
                "set_conversation",
                CacheKeys.conversation(conversation.id),
                self.cache.set_conversation(conversation),
            ),
            await best_effort(
                "invalidate_user_conversations",
                CacheKeys.user_conversations(user_id),
                self.cache.invalidate_user(user_id),
            ),
        ]
        return ConversationResult(conversation, tuple(effects))

    async def get_conversation(self, conversation_id: int, user_id: int) -> ConversationResult:
        """Single conversation, read through the conversation cache."""
        effects: list[CacheEffect] = []
        key = CacheKeys.conversation(conversation_id)
        conversation = await self._read_cache(
            "get_conversation", key, self.cache.get_conversation(conversation_id), effects
        )
        if conversation is None or not conversation.is_active:
            conversation = await self.conversations.get_by_id(conversation_id)
            if conversation is None:
                raise ConversationNotFoundError(conversation_id)
            effects.append(
                await best_effort(
                    "populate_conversation", key, self.cache.set_conversation(conversation)
                )
            )
        if conversation.user_id != user_id:
            raise ConversationAccessDeniedError()
        return ConversationResult(conversation, tuple(effects))

    async def get_conversations(
        self, user_id: int, limit: int = 0, offset: int = 0
    ) -> ConversationPage:
        await self._require_user(user_id)
        limit, offset = normalize_page(limit, offset, DEFAULT_CONVERSATION_LIMIT)
        effects: list[CacheEffect] = []
        key = CacheKeys.user_conversations(user_id)

        snapshot = None
        if offset == 0:
            snapshot = await self._read_cache(
                "get_user_conversations", key, self.cache.get_user_conversations(user_id), effects
            )

        total = await self.conversations.get_user_conversation_count(user_id)

        if snapshot is not None and (len(snapshot) >= limit or len(snapshot) >= total):
            return ConversationPage(snapshot[:limit], total, True, tuple(effects))

        conversations = await self.conversations.get_by_user_id(user_id, limit, offset)
        if offset == 0:
            effects.append(
                await best_effort(
                    "set_user_conversations",
                    key,
                    self.cache.set_user_conversations(user_id, conversations),
                )
            )
        return ConversationPage(conversations, total, False, tuple(effects))

    async def get_conversation_messages(
        self,
        conversation_id: int,
        user_id: int | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> MessagePage:
        """Page of a conversation's messages, oldest first.

        When user_id is given the conversation must belong to that user.
        """
        if user_id is not None:
            await self._require_owned(conversation_id, user_id)
        elif await self.conversations.get_by_id(conversation_id) is None:
            raise ConversationNotFoundError(conversation_id)

        limit, offset = normalize_page(limit, offset, DEFAULT_MESSAGE_LIMIT)
        effects: list[CacheEffect] = []
        key = CacheKeys.conversation_messages(conversation_id)

        snapshot = None
        if offset == 0:
            snapshot = await self._read_cache(
                "get_conversation_messages",
                key,
                self.cache.get_conversation_messages(conversation_id),
                effects,
            )

        total = await self.messages.get_conversation_message_count(conversation_id)

        if snapshot is not None and (len(snapshot) >= limit or len(snapshot) >= total):
            return MessagePage(snapshot[:limit], total, True, tuple(effects))

        messages = await self.messages.get_by_conversation_id(conversation_id, limit, offset)
        if offset == 0:
            effects.append(
                await best_effort(
                    "set_conversation_messages",
                    key,
                    self.cache.set_conversation_messages(conversation_id, messages),
                )
            )
        return MessagePage(messages, total, False, tuple(effects))

    async def get_message(self, message_id: int, user_id: int) -> Message:
        """Single message, read through the message cache."""
        effects: list[CacheEffect] = []
        key = CacheKeys.message(message_id)
        message = await self._read_cache(
            "get_message", key, self.cache.get_message(message_id), effects
        )
        if message is None:
            message = await self.messages.get_by_id(message_id)
            if message is None:
                raise MessageNotFoundError(message_id)
            await best_effort("populate_message", key, self.cache.set_message(message))
        await self._require_owned(message.conversation_id, user_id)
        return message

    async def send_message(
        self,
        conversation_id: int,
        user_id: int,
        content: str,
        model: str | None = None,
    ) -> SendMessageResult:
        """Store the user's message, ask the model for a reply and store that too.

        If the chat call fails, the user message stays persisted without a
        reply and the error propagates unchanged.
        """
        if not content.strip():
            raise ValidationError("Message content must not be empty")

        await self._require_user(user_id)
        conversation = await self._require_owned(conversation_id, user_id)
        model = model or self.default_model
        effects: list[CacheEffect] = []

        user_message = await self.messages.create(
            Message(
                conversation_id=conversation_id,
                role=MessageRole.USER,
                content=content,
                model=model,
            )
        )
        effects.append(
            await best_effort(
                "set_message",
                CacheKeys.message(user_message.id),
                self.cache.set_message(user_message),
            )
        )

        history = await self.messages.get_conversation_messages(conversation_id)
        request = (
            ChatCompletionRequest(
                model=model,
                messages=[ChatMessage(role=m.role.value, content=m.content) for m in history],
            )
            .with_max_tokens(REPLY_MAX_TOKENS)
            .with_temperature(REPLY_TEMPERATURE)
            .with_user(f"user_{user_id}")
        )
        response = await self.chat.chat_completion(request)
        response.raise_for_status()
        reply = response.content
        if not reply:
            raise EmptyChatResponseError()

        assistant_message = await self.messages.create(
            Message(
                conversation_id=conversation_id,
                role=MessageRole.ASSISTANT,
                content=reply,
                model=model,
                finish_reason=response.finish_reason,
                tokens=response.usage.total_tokens,
            )
        )
        effects.append(
            await best_effort(
                "set_message",
                CacheKeys.message(assistant_message.id),
                self.cache.set_message(assistant_message),
            )
        )

        changes: dict[str, Any] = {
            "message_count": conversation.message_count + 2,
            "last_message_at": datetime.now(timezone.utc),
        }
        if needs_title(conversation):
            changes["title"] = derive_title(content)
        conversation = await self.conversations.update(conversation.model_copy(update=changes))

        effects.append(
            await best_effort(
                "set_conversation",
                CacheKeys.conversation(conversation_id),
                self.cache.set_conversation(conversation),
            )
        )
        effects.extend(await self._invalidate_after_change(conversation_id, user_id))

        logger.info(
            "Conversation %s: stored reply %s (%d tokens)",
            conversation_id,
            assistant_message.id,
            assistant_message.tokens,
        )
        return SendMessageResult(
            user_message,
            assistant_message,
            conversation,
            usage=response.usage.model_dump(),
            cache_effects=tuple(effects),
        )

    async def delete_conversation(
        self, conversation_id: int, user_id: int
    ) -> tuple[CacheEffect, ...]:
        """Soft-delete the conversation. Its messages are kept."""
        await self._require_user(user_id)
        await self._require_owned(conversation_id, user_id)
        await self.conversations.delete(conversation_id)
        logger.info("Deleted conversation %s for user %s", conversation_id, user_id)
        return tuple(await self._invalidate_after_change(conversation_id, user_id))
