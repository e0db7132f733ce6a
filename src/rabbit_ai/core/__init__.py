"""Domain entities and the service error taxonomy."""

from rabbit_ai.core.models import (
    DEFAULT_CONVERSATION_TITLE,
    Conversation,
    ConversationStatus,
    Message,
    MessageRole,
    Platform,
    User,
    UserStatus,
)

__all__ = [
    "DEFAULT_CONVERSATION_TITLE",
    "Conversation",
    "ConversationStatus",
    "Message",
    "MessageRole",
    "Platform",
    "User",
    "UserStatus",
]
