"""Persistence layer: SQLAlchemy tables, repositories and the cached decorator."""

from rabbit_ai.persistence.cached import CachedUserRepository
from rabbit_ai.persistence.db import Database
from rabbit_ai.persistence.memory import (
    InMemoryConversationRepository,
    InMemoryMessageRepository,
    InMemoryUserRepository,
)
from rabbit_ai.persistence.repositories import (
    ConversationRepository,
    MessageRepository,
    SqlConversationRepository,
    SqlMessageRepository,
    SqlUserRepository,
    UserRepository,
)

__all__ = [
    "Database",
    # Interfaces
    "UserRepository",
    "ConversationRepository",
    "MessageRepository",
    # SQLAlchemy
    "SqlUserRepository",
    "SqlConversationRepository",
    "SqlMessageRepository",
    # In-memory
    "InMemoryUserRepository",
    "InMemoryConversationRepository",
    "InMemoryMessageRepository",
    # Caching decorator
    "CachedUserRepository",
]
