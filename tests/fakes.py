"""Test doubles shared across the unit tests."""

from __future__ import annotations

import fnmatch
from collections.abc import AsyncIterator
from typing import Any

import httpx
from redis.exceptions import ConnectionError as RedisConnectionError

from rabbit_ai.chat.models import ChatCompletionRequest, ChatCompletionResponse

# bcrypt's minimum work factor keeps hashing fast in tests
TEST_PASSWORD_ROUNDS = 4


class FakeRedis:
    """Dict-backed stand-in for redis.asyncio.Redis.

    Add operation names ("get", "set", "delete", "ping", "scan", ...) to
    `fail_ops` to make them raise a connection error; "*" fails everything.
    """

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail_ops: set[str] = set()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.closed = False

    def _check(self, op: str, *args: Any) -> None:
        self.calls.append((op, args))
        if op in self.fail_ops or "*" in self.fail_ops:
            raise RedisConnectionError(f"{op} unavailable")

    def ops(self, op: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == op]

    async def get(self, key: str) -> bytes | None:
        self._check("get", key)
        return self.data.get(key)

    async def set(self, key: str, value: bytes, ex: int | None = None) -> bool:
        self._check("set", key)
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        self._check("delete", *keys)
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def ping(self) -> bool:
        self._check("ping")
        return True

    async def scan_iter(self, match: str = "*", count: int | None = None) -> AsyncIterator[bytes]:
        self._check("scan", match)
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, match):
                yield key.encode()

    async def dbsize(self) -> int:
        self._check("dbsize")
        return len(self.data)

    async def info(self, section: str | None = None) -> dict[str, Any]:
        self._check("info", section)
        return {"used_memory": 1024 * len(self.data)}

    async def aclose(self) -> None:
        self.closed = True


def chat_response(
    content: str = "Hello!",
    *,
    status_code: int = 0,
    status_msg: str = "",
    finish_reason: str = "stop",
    total_tokens: int = 12,
    delta: bool = False,
) -> ChatCompletionResponse:
    """Build a completion response as the chat API returns it."""
    message_field = "delta" if delta else "message"
    payload: dict[str, Any] = {
        "id": "resp-1",
        "model": "MiniMax-M1",
        "choices": [
            {
                "index": 0,
                "finish_reason": finish_reason,
                message_field: {"role": "assistant", "content": content},
            }
        ],
        "usage": {"total_tokens": total_tokens, "prompt_tokens": 5, "completion_tokens": 7},
        "base_resp": {"status_code": status_code, "status_msg": status_msg},
    }
    if status_code != 0:
        payload["choices"] = []
    return ChatCompletionResponse.model_validate(payload)


class FakeChat:
    """ChatCompleter returning queued responses and recording requests."""

    def __init__(self, *responses: ChatCompletionResponse | Exception) -> None:
        self.responses = list(responses) or [chat_response()]
        self.requests: list[ChatCompletionRequest] = []

    async def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)
