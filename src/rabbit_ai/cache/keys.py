"""Cache key schema.

Key format: {prefix}{numeric_id}

- Singular entities: user:42, conversation:7, message:1001
- Collections are keyed by their owner: user_conversations:42 (owner = user),
  conversation_messages:7 (owner = conversation)

IDs are rendered as base-10 integers with no padding. The format is shared
with entries written by earlier deployments and must not change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

EntityKind = Literal[
    "user",
    "conversation",
    "message",
    "user_conversations",
    "conversation_messages",
]

USER_TTL = 30 * 60
CONVERSATION_TTL = 30 * 60
MESSAGE_TTL = 60 * 60
USER_CONVERSATIONS_TTL = 15 * 60
CONVERSATION_MESSAGES_TTL = 30 * 60


@dataclass(frozen=True)
class CacheTTLs:
    """Time-to-live per entity kind, in seconds."""

    user: int = USER_TTL
    conversation: int = CONVERSATION_TTL
    message: int = MESSAGE_TTL
    user_conversations: int = USER_CONVERSATIONS_TTL
    conversation_messages: int = CONVERSATION_MESSAGES_TTL


class CacheKeys:
    """Cache key generator following the prefix + ID convention."""

    USER = "user:"
    CONVERSATION = "conversation:"
    MESSAGE = "message:"
    USER_CONVERSATIONS = "user_conversations:"
    CONVERSATION_MESSAGES = "conversation_messages:"

    _PREFIXES: dict[str, EntityKind] = {
        USER: "user",
        CONVERSATION: "conversation",
        MESSAGE: "message",
        USER_CONVERSATIONS: "user_conversations",
        CONVERSATION_MESSAGES: "conversation_messages",
    }

    @staticmethod
    def _render(prefix: str, entity_id: int) -> str:
        return f"{prefix}{int(entity_id):d}"

    @classmethod
    def user(cls, user_id: int) -> str:
        """Key for a User entity."""
        return cls._render(cls.USER, user_id)

    @classmethod
    def conversation(cls, conversation_id: int) -> str:
        """Key for a Conversation entity."""
        return cls._render(cls.CONVERSATION, conversation_id)

    @classmethod
    def message(cls, message_id: int) -> str:
        """Key for a Message entity."""
        return cls._render(cls.MESSAGE, message_id)

    @classmethod
    def user_conversations(cls, user_id: int) -> str:
        """Key for the snapshot of a user's conversation list."""
        return cls._render(cls.USER_CONVERSATIONS, user_id)

    @classmethod
    def conversation_messages(cls, conversation_id: int) -> str:
        """Key for the snapshot of a conversation's message list."""
        return cls._render(cls.CONVERSATION_MESSAGES, conversation_id)

    @classmethod
    def pattern(cls, kind: EntityKind) -> str:
        """SCAN pattern matching every key of one kind."""
        for prefix, prefix_kind in cls._PREFIXES.items():
            if prefix_kind == kind:
                return f"{prefix}*"
        raise ValueError(f"Unknown cache entity kind: {kind}")

    @classmethod
    def parse_key(cls, key: str) -> tuple[EntityKind, int] | None:
        """Split a key into (kind, id).

        Returns None if the key doesn't match the expected format.
        """
        prefix, sep, raw_id = key.partition(":")
        if not sep or not raw_id.isdigit():
            return None
        kind = cls._PREFIXES.get(f"{prefix}:")
        if kind is None:
            return None
        return kind, int(raw_id)
