"""Tests for the bounded chunk stream."""

import asyncio

import pytest

from rabbit_ai.chat.models import ChatCompletionError, ChatCompletionResponse
from rabbit_ai.chat.stream import ChatStream
from tests.fakes import chat_response


def chunks(*parts: str) -> list[ChatCompletionResponse]:
    return [chat_response(part, delta=True, finish_reason="") for part in parts]


class TestChatStream:
    @pytest.mark.asyncio
    async def test_delivers_in_order(self) -> None:
        async def producer(emit) -> None:
            for chunk in chunks("a", "b", "c"):
                await emit(chunk)

        received = [chunk.content async for chunk in ChatStream(producer)]

        assert received == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_collect(self) -> None:
        async def producer(emit) -> None:
            for chunk in chunks("Hel", "lo"):
                await emit(chunk)

        assert await ChatStream(producer).collect() == "Hello"

    @pytest.mark.asyncio
    async def test_producer_failure_ends_with_error_chunk(self) -> None:
        async def producer(emit) -> None:
            await emit(chunks("partial")[0])
            raise ConnectionError("socket closed")

        received = [chunk async for chunk in ChatStream(producer)]

        assert [c.is_success for c in received] == [True, False]
        assert received[-1].base_resp.status_code == -1
        assert "socket closed" in received[-1].base_resp.status_msg

    @pytest.mark.asyncio
    async def test_consumer_stops_at_error_chunk(self) -> None:
        async def producer(emit) -> None:
            await emit(chunks("a")[0])
            await emit(chat_response(status_code=1002, status_msg="rate limit"))
            await emit(chunks("never")[0])

        received = [chunk async for chunk in ChatStream(producer)]

        assert len(received) == 2
        assert not received[-1].is_success

    @pytest.mark.asyncio
    async def test_collect_raises_on_error_chunk(self) -> None:
        async def producer(emit) -> None:
            await emit(chat_response(status_code=1004, status_msg="bad key"))

        with pytest.raises(ChatCompletionError):
            await ChatStream(producer).collect()

    @pytest.mark.asyncio
    async def test_buffer_is_bounded(self) -> None:
        produced = 0

        async def producer(emit) -> None:
            nonlocal produced
            for chunk in chunks(*"abcdefghijklmnopqrst"):
                await emit(chunk)
                produced += 1

        stream = ChatStream(producer, maxsize=3)
        await asyncio.sleep(0.01)

        assert produced == 3
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_early_exit_cancels_producer(self) -> None:
        cancelled = asyncio.Event()

        async def producer(emit) -> None:
            try:
                while True:
                    await emit(chunks("x")[0])
            except asyncio.CancelledError:
                cancelled.set()
                raise

        stream = ChatStream(producer, maxsize=1)
        async for _ in stream:
            break
        await stream.aclose()

        assert cancelled.is_set()
