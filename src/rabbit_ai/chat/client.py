"""MiniMax chat-completion client.

POSTs to `{base_url}/text/chatcompletion_v2` with a Bearer API key. Calls
are bounded by a fixed timeout (30 seconds by default) and never retried.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from rabbit_ai.chat.models import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    ChatTransportError,
)
from rabbit_ai.chat.stream import ChatStream, Emit
from rabbit_ai.observability.metrics import record_chat_request

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.minimaxi.com/v1"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MODEL = "MiniMax-M1"

COMPLETION_PATH = "/text/chatcompletion_v2"


class MiniMaxClient:
    """Async client for the chat-completion API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        default_model: str = DEFAULT_MODEL,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.default_model = default_model
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def url(self) -> str:
        return f"{self.base_url}{COMPLETION_PATH}"

    def _headers(self, stream: bool = False) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    def new_request(
        self, messages: list[ChatMessage], model: str | None = None
    ) -> ChatCompletionRequest:
        """Build a request with the default sampling parameters."""
        return ChatCompletionRequest(model=model or self.default_model, messages=messages)

    async def chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """Run one non-streaming completion.

        Raises:
            ChatTransportError: On connection failure, timeout or non-200 status.
            ChatCompletionError: If the API reports a non-zero status code.
        """
        payload = request.model_copy(update={"stream": False}).to_payload()
        try:
            response = await self._client.post(self.url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            record_chat_request("timeout")
            raise ChatTransportError(f"Chat API request timed out: {e}") from e
        except httpx.HTTPError as e:
            record_chat_request("transport_error")
            raise ChatTransportError(f"Failed to send chat request: {e}") from e

        if response.status_code != 200:
            record_chat_request("http_error")
            raise ChatTransportError(
                f"Chat API request failed with status {response.status_code}",
                http_status=response.status_code,
                body=response.text,
            )

        try:
            result = ChatCompletionResponse.model_validate_json(response.content)
        except ValidationError as e:
            record_chat_request("invalid_response")
            raise ChatTransportError(f"Failed to decode chat response: {e}") from e

        if not result.is_success:
            record_chat_request("api_error")
            logger.warning(
                "Chat API error %s: %s", result.base_resp.status_code, result.base_resp.status_msg
            )
            result.raise_for_status()

        record_chat_request("success")
        return result

    async def chat_completion_stream(self, request: ChatCompletionRequest) -> ChatStream:
        """Start a streaming completion.

        The HTTP status is checked before returning; failures after that
        arrive as a terminal error chunk on the stream.
        """
        payload = request.model_copy(update={"stream": True}).to_payload()
        http_request = self._client.build_request(
            "POST", self.url, json=payload, headers=self._headers(stream=True)
        )
        try:
            response = await self._client.send(http_request, stream=True)
        except httpx.HTTPError as e:
            record_chat_request("transport_error")
            raise ChatTransportError(f"Failed to send chat request: {e}") from e

        if response.status_code != 200:
            body = (await response.aread()).decode("utf-8", errors="replace")
            await response.aclose()
            record_chat_request("http_error")
            raise ChatTransportError(
                f"Chat API request failed with status {response.status_code}",
                http_status=response.status_code,
                body=body,
            )

        async def produce(emit: Emit) -> None:
            try:
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:") :].strip()
                    if data == "[DONE]":
                        break
                    try:
                        chunk = ChatCompletionResponse.model_validate_json(data)
                    except ValidationError:
                        logger.warning("Skipping undecodable stream chunk: %r", data[:100])
                        continue
                    await emit(chunk)
            finally:
                await response.aclose()

        record_chat_request("stream")
        return ChatStream(produce)

    async def simple_chat(
        self,
        user_message: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Single-turn chat returning only the reply text."""
        request = self.new_request(
            [
                ChatMessage(role="system", name="MiniMax AI", content=""),
                ChatMessage(role="user", name="用户", content=user_message),
            ]
        )
        if temperature is not None:
            request.with_temperature(temperature)
        if max_tokens is not None:
            request.with_max_tokens(max_tokens)
        response = await self.chat_completion(request)
        return response.content

    async def close(self) -> None:
        await self._client.aclose()
