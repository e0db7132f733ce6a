"""Bounded single-producer / single-consumer chunk stream.

Closing protocol:
- One producer task puts chunks in order, then closes the stream by putting
  the `None` sentinel. It closes on normal completion and after a read
  failure, in which case the last chunk before the sentinel is an error
  chunk (`base_resp.status_code == -1`).
- The consumer iterates until the sentinel arrives or until it receives a
  chunk whose status is not success; such a chunk is the last one it sees.
- Leaving the iteration early (break, exception, `aclose()`) cancels the
  producer so the underlying response is released.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from rabbit_ai.chat.models import ChatCompletionResponse

logger = logging.getLogger(__name__)

# Chunks buffered between producer and consumer
STREAM_BUFFER_SIZE = 10

Emit = Callable[[ChatCompletionResponse], Awaitable[None]]
Producer = Callable[[Emit], Awaitable[None]]


class ChatStream:
    """Ordered chat-completion chunks delivered through a bounded queue."""

    def __init__(self, producer: Producer, maxsize: int = STREAM_BUFFER_SIZE):
        self._queue: asyncio.Queue[ChatCompletionResponse | None] = asyncio.Queue(maxsize)
        self._task = asyncio.create_task(self._run(producer))

    async def _run(self, producer: Producer) -> None:
        try:
            await producer(self._queue.put)
        except Exception as e:
            logger.warning("Chat stream producer failed: %s", e)
            await self._queue.put(ChatCompletionResponse.stream_error(f"Stream read error: {e}"))
        await self._queue.put(None)

    async def __aiter__(self) -> AsyncIterator[ChatCompletionResponse]:
        try:
            while True:
                chunk = await self._queue.get()
                if chunk is None:
                    return
                yield chunk
                if not chunk.is_success:
                    return
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Stop the producer if it is still running."""
        if not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def collect(self) -> str:
        """Drain the stream and return the concatenated text.

        Raises:
            ChatCompletionError: If an error chunk arrives.
        """
        parts = []
        last: ChatCompletionResponse | None = None
        async for chunk in self:
            last = chunk
            if chunk.is_success:
                parts.append(chunk.content)
        if last is not None:
            last.raise_for_status()
        return "".join(parts)
