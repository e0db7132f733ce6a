"""Application services."""

from rabbit_ai.services.auth import AuthService, LoginResult
from rabbit_ai.services.conversation import (
    ConversationPage,
    ConversationResult,
    ConversationService,
    MessagePage,
    SendMessageResult,
)
from rabbit_ai.services.device import DeviceService
from rabbit_ai.services.user import UserService

__all__ = [
    "AuthService",
    "LoginResult",
    "UserService",
    "DeviceService",
    "ConversationService",
    "ConversationResult",
    "ConversationPage",
    "MessagePage",
    "SendMessageResult",
]
