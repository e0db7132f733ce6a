"""Chat-completion wire models and the remote error taxonomy.

Field names follow the MiniMax `text/chatcompletion_v2` JSON API. A
response with a non-zero `base_resp.status_code` is a remote failure; the
code tells the caller which kind.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from rabbit_ai.core.errors import RabbitError

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048
DEFAULT_TOP_P = 0.9

# Status code the stream producer puts on its terminal error chunk
STREAM_ERROR_STATUS = -1


class ChatErrorCode(IntEnum):
    """Remote status codes reported in `base_resp.status_code`."""

    UNKNOWN = 1000
    TIMEOUT = 1001
    RATE_LIMIT = 1002
    AUTH_FAILED = 1004
    INSUFFICIENT_BALANCE = 1008
    INTERNAL = 1013
    OUTPUT = 1027
    TOKEN_LIMIT = 1039
    INVALID_PARAMS = 2013


ERROR_MESSAGES: dict[int, str] = {
    ChatErrorCode.UNKNOWN: "Unknown error",
    ChatErrorCode.TIMEOUT: "Request timed out",
    ChatErrorCode.RATE_LIMIT: "Rate limit exceeded",
    ChatErrorCode.AUTH_FAILED: "Authentication failed",
    ChatErrorCode.INSUFFICIENT_BALANCE: "Insufficient balance",
    ChatErrorCode.INTERNAL: "Internal service error",
    ChatErrorCode.OUTPUT: "Output content error",
    ChatErrorCode.TOKEN_LIMIT: "Token limit exceeded",
    ChatErrorCode.INVALID_PARAMS: "Invalid parameters",
}


def error_message(code: int) -> str:
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[ChatErrorCode.UNKNOWN])


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------


class ChatServiceError(RabbitError):
    """Any failure talking to the chat-completion API."""

    status_code = 502
    code = "ChatServiceError"


class ChatCompletionError(ChatServiceError):
    """The API answered with a non-zero status code."""

    def __init__(self, remote_code: int, remote_message: str = ""):
        self.remote_code = remote_code
        self.remote_message = remote_message or error_message(remote_code)
        super().__init__(f"Chat API error: {remote_code} - {self.remote_message}")
        if self.is_rate_limited:
            self.status_code = 429
        elif self.is_auth_failed:
            self.status_code = 401
        elif self.is_insufficient_balance:
            self.status_code = 402
        elif self.is_token_limited:
            self.status_code = 400

    @property
    def is_rate_limited(self) -> bool:
        return self.remote_code == ChatErrorCode.RATE_LIMIT

    @property
    def is_auth_failed(self) -> bool:
        return self.remote_code == ChatErrorCode.AUTH_FAILED

    @property
    def is_insufficient_balance(self) -> bool:
        return self.remote_code == ChatErrorCode.INSUFFICIENT_BALANCE

    @property
    def is_token_limited(self) -> bool:
        return self.remote_code == ChatErrorCode.TOKEN_LIMIT

    @property
    def is_timeout(self) -> bool:
        return self.remote_code == ChatErrorCode.TIMEOUT

    @property
    def is_invalid_params(self) -> bool:
        return self.remote_code == ChatErrorCode.INVALID_PARAMS


class ChatTransportError(ChatServiceError):
    """The HTTP exchange itself failed (connect error, timeout, non-200)."""

    def __init__(self, message: str, http_status: int | None = None, body: str = ""):
        self.http_status = http_status
        self.body = body
        super().__init__(message)


class EmptyChatResponseError(ChatServiceError):
    """The API reported success but returned no content."""

    def __init__(self) -> None:
        super().__init__("Chat API returned an empty response")


# -----------------------------------------------------------------------------
# Request
# -----------------------------------------------------------------------------


class ChatMessage(BaseModel):
    # Stream deltas after the first one carry no role
    role: str = ""
    content: str = ""
    name: str | None = None


class ChatCompletionRequest(BaseModel):
    """Chat-completion request with the service's default sampling parameters.

    The `with_*` setters silently ignore out-of-range values and return self,
    so they can be chained.
    """

    model: str
    messages: list[ChatMessage]
    stream: bool = False
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    top_p: float = DEFAULT_TOP_P
    stop: list[str] | None = None
    user: str | None = None

    def with_stream(self, stream: bool) -> ChatCompletionRequest:
        self.stream = stream
        return self

    def with_temperature(self, temperature: float) -> ChatCompletionRequest:
        if 0.0 <= temperature <= 2.0:
            self.temperature = temperature
        return self

    def with_max_tokens(self, max_tokens: int) -> ChatCompletionRequest:
        if max_tokens > 0:
            self.max_tokens = max_tokens
        return self

    def with_top_p(self, top_p: float) -> ChatCompletionRequest:
        if 0.0 <= top_p <= 1.0:
            self.top_p = top_p
        return self

    def with_stop(self, stop: list[str]) -> ChatCompletionRequest:
        self.stop = stop
        return self

    def with_user(self, user: str) -> ChatCompletionRequest:
        self.user = user
        return self

    def to_payload(self) -> dict[str, Any]:
        """JSON body, omitting unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


# -----------------------------------------------------------------------------
# Response
# -----------------------------------------------------------------------------


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Usage(_Lenient):
    total_tokens: int = 0
    total_characters: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0


class Choice(_Lenient):
    index: int = 0
    finish_reason: str = ""
    message: ChatMessage | None = None
    delta: ChatMessage | None = None


class BaseResp(_Lenient):
    status_code: int = 0
    status_msg: str = ""


class ChatCompletionResponse(_Lenient):
    id: str = ""
    created: int = 0
    model: str = ""
    object: str = ""
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)
    input_sensitive: bool = False
    output_sensitive: bool = False
    base_resp: BaseResp = Field(default_factory=BaseResp)

    @property
    def is_success(self) -> bool:
        return self.base_resp.status_code == 0

    @property
    def content(self) -> str:
        """Text of the first choice (full message, or the delta when streaming)."""
        if not self.choices:
            return ""
        choice = self.choices[0]
        if choice.message is not None and choice.message.content:
            return choice.message.content
        if choice.delta is not None:
            return choice.delta.content
        return ""

    @property
    def finish_reason(self) -> str:
        return self.choices[0].finish_reason if self.choices else ""

    def raise_for_status(self) -> None:
        """Raise ChatCompletionError if the API reported a failure."""
        if not self.is_success:
            raise ChatCompletionError(self.base_resp.status_code, self.base_resp.status_msg)

    @classmethod
    def stream_error(cls, message: str) -> ChatCompletionResponse:
        """Terminal chunk a stream producer emits when reading fails."""
        return cls(base_resp=BaseResp(status_code=STREAM_ERROR_STATUS, status_msg=message))
