"""Chat-completion client, wire models and streaming."""

from rabbit_ai.chat.client import MiniMaxClient
from rabbit_ai.chat.models import (
    ChatCompletionError,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatErrorCode,
    ChatMessage,
    ChatServiceError,
    ChatTransportError,
    EmptyChatResponseError,
    Usage,
)
from rabbit_ai.chat.stream import ChatStream

__all__ = [
    "MiniMaxClient",
    "ChatStream",
    "ChatMessage",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "Usage",
    "ChatErrorCode",
    "ChatServiceError",
    "ChatCompletionError",
    "ChatTransportError",
    "EmptyChatResponseError",
]
