"""Direct chat-completion endpoints, with optional SSE streaming."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import orjson
from fastapi import APIRouter
from fastapi.responses import ORJSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from rabbit_ai.api.deps import ContainerDep
from rabbit_ai.api.responses import ok
from rabbit_ai.chat.models import ChatCompletionRequest, ChatMessage
from rabbit_ai.chat.stream import ChatStream

router = APIRouter(prefix="/ai", tags=["ai"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    temperature: float = 0.0
    max_tokens: int = 0
    top_p: float = 0.0
    stream: bool = False
    stop: list[str] = Field(default_factory=list)
    user: str = ""


class SimpleChatRequest(BaseModel):
    message: str = Field(min_length=1)


def build_request(body: ChatRequest, default_model: str) -> ChatCompletionRequest:
    """Translate the endpoint body; zero/empty fields keep the defaults."""
    request = ChatCompletionRequest(
        model=default_model,
        messages=[
            ChatMessage(role="system", name="MiniMax AI", content=""),
            ChatMessage(role="user", name="用户", content=body.message),
        ],
    )
    if body.temperature > 0:
        request.with_temperature(body.temperature)
    if body.max_tokens > 0:
        request.with_max_tokens(body.max_tokens)
    if body.top_p > 0:
        request.with_top_p(body.top_p)
    if body.stop:
        request.with_stop(body.stop)
    if body.user:
        request.with_user(body.user)
    return request.with_stream(body.stream)


def sse_event(event: str, data: Any) -> bytes:
    return b"event: " + event.encode() + b"\ndata: " + orjson.dumps(data) + b"\n\n"


async def sse_events(stream: ChatStream) -> AsyncIterator[bytes]:
    """Render chunks as `message` events, ending with `done` or `error`."""
    async for chunk in stream:
        if not chunk.is_success:
            yield sse_event(
                "error",
                {"code": chunk.base_resp.status_code, "message": chunk.base_resp.status_msg},
            )
            return
        if chunk.choices and chunk.content:
            yield sse_event("message", {"content": chunk.content, "index": chunk.choices[0].index})
        if chunk.finish_reason == "stop":
            yield sse_event("done", {"usage": chunk.usage.model_dump()})
            return


@router.post("/chat", response_model=None)
async def chat(body: ChatRequest, container: ContainerDep) -> ORJSONResponse | StreamingResponse:
    request = build_request(body, container.settings.chat_default_model)
    if body.stream:
        stream = await container.chat.chat_completion_stream(request)
        return StreamingResponse(
            sse_events(stream), media_type="text/event-stream", headers=SSE_HEADERS
        )

    response = await container.chat.chat_completion(request)
    return ok({"content": response.content, "usage": response.usage.model_dump()})


@router.post("/chat/simple")
async def simple_chat(body: SimpleChatRequest, container: ContainerDep) -> ORJSONResponse:
    content = await container.chat.simple_chat(body.message)
    return ok({"content": content})
