"""Tests for chat-completion request and response models."""

import pytest

from rabbit_ai.chat.models import (
    STREAM_ERROR_STATUS,
    ChatCompletionError,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatErrorCode,
    ChatMessage,
    error_message,
)
from tests.fakes import chat_response


def request() -> ChatCompletionRequest:
    return ChatCompletionRequest(model="MiniMax-M1", messages=[ChatMessage(role="user")])


class TestRequest:
    def test_defaults(self) -> None:
        req = request()

        assert (req.temperature, req.max_tokens, req.top_p) == (0.7, 2048, 0.9)
        assert req.stream is False

    def test_setters_chain_and_ignore_out_of_range(self) -> None:
        req = request().with_temperature(3.0).with_max_tokens(0).with_top_p(1.5)

        assert (req.temperature, req.max_tokens, req.top_p) == (0.7, 2048, 0.9)

        req.with_temperature(0.2).with_max_tokens(100).with_top_p(0.5)
        assert (req.temperature, req.max_tokens, req.top_p) == (0.2, 100, 0.5)

    def test_payload_omits_unset_optionals(self) -> None:
        payload = request().to_payload()

        assert "stop" not in payload
        assert "user" not in payload
        assert payload["messages"] == [{"role": "user", "content": ""}]

    def test_payload_includes_set_optionals(self) -> None:
        payload = request().with_stop(["\n"]).with_user("user_1").to_payload()

        assert payload["stop"] == ["\n"]
        assert payload["user"] == "user_1"


class TestResponse:
    def test_success_content(self) -> None:
        response = chat_response("Hi there")

        assert response.is_success
        assert response.content == "Hi there"
        assert response.finish_reason == "stop"
        response.raise_for_status()

    def test_delta_content(self) -> None:
        assert chat_response("par", delta=True).content == "par"

    def test_empty_choices(self) -> None:
        response = ChatCompletionResponse()

        assert response.content == ""
        assert response.finish_reason == ""

    def test_unknown_fields_are_ignored(self) -> None:
        response = ChatCompletionResponse.model_validate({"brand_new_field": 1, "choices": []})

        assert response.is_success

    def test_raise_for_status(self) -> None:
        response = chat_response(status_code=1002, status_msg="rate limit")

        with pytest.raises(ChatCompletionError) as exc_info:
            response.raise_for_status()
        assert exc_info.value.remote_code == 1002
        assert exc_info.value.remote_message == "rate limit"

    def test_stream_error(self) -> None:
        chunk = ChatCompletionResponse.stream_error("read failed")

        assert not chunk.is_success
        assert chunk.base_resp.status_code == STREAM_ERROR_STATUS


class TestCompletionError:
    @pytest.mark.parametrize(
        "code, status",
        [
            (ChatErrorCode.RATE_LIMIT, 429),
            (ChatErrorCode.AUTH_FAILED, 401),
            (ChatErrorCode.INSUFFICIENT_BALANCE, 402),
            (ChatErrorCode.TOKEN_LIMIT, 400),
            (ChatErrorCode.INTERNAL, 502),
        ],
    )
    def test_http_status_mapping(self, code: int, status: int) -> None:
        assert ChatCompletionError(code).status_code == status

    def test_classification(self) -> None:
        assert ChatCompletionError(ChatErrorCode.TIMEOUT).is_timeout
        assert ChatCompletionError(ChatErrorCode.INVALID_PARAMS).is_invalid_params
        assert not ChatCompletionError(ChatErrorCode.TIMEOUT).is_rate_limited

    def test_default_message(self) -> None:
        assert ChatCompletionError(1008).remote_message == "Insufficient balance"
        assert error_message(4242) == "Unknown error"
