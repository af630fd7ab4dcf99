"""Tests for the LLM client, output decoding and error classification."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from nexus_oracle.core.errors import LLMError, LLMErrorKind, classify_llm_error
from nexus_oracle.core.llm import LLMOutputError, OracleLLM, decode_llm_json, estimate_tokens
from nexus_oracle.core.rate_limiter import TokenRateLimiter
from nexus_oracle.core.schemas_oracle import ActionKind, IntentDescriptor

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status_error(cls, status, message="error"):
    return cls(message, response=httpx.Response(status, request=_REQUEST), body=None)


class TestDecodeLLMJson:
    def test_plain_object(self):
        intent = decode_llm_json('{"action": "none"}', IntentDescriptor)
        assert intent.action == ActionKind.NONE

    def test_fenced_object(self):
        intent = decode_llm_json('```json\n{"action": "none"}\n```', IntentDescriptor)
        assert intent.action == ActionKind.NONE

    @pytest.mark.parametrize(
        "raw",
        [
            "not json at all",
            "",
            '[{"action": "none"}]',
            'Here you go: {"action": "none"}',
            '{"action": "launch_rocket"}',
            '{"target_value": "mentor"}',
        ],
    )
    def test_rejects_non_conforming(self, raw):
        with pytest.raises(LLMOutputError):
            decode_llm_json(raw, IntentDescriptor)


class TestClassifyLLMError:
    def test_timeout(self):
        assert classify_llm_error(asyncio.TimeoutError()) == LLMErrorKind.TIMEOUT
        assert classify_llm_error(openai.APITimeoutError(request=_REQUEST)) == LLMErrorKind.TIMEOUT

    def test_auth(self):
        err = _status_error(openai.AuthenticationError, 401)
        assert classify_llm_error(err) == LLMErrorKind.INVALID_API_KEY

    def test_rate_limited(self):
        err = _status_error(openai.RateLimitError, 429)
        assert classify_llm_error(err) == LLMErrorKind.RATE_LIMITED

    def test_context_length(self):
        err = _status_error(
            openai.BadRequestError, 400, "This model's maximum context length is 8192 tokens"
        )
        assert classify_llm_error(err) == LLMErrorKind.CONTEXT_LENGTH_EXCEEDED

    def test_other_bad_request(self):
        err = _status_error(openai.BadRequestError, 400, "invalid temperature")
        assert classify_llm_error(err) == LLMErrorKind.UNKNOWN

    @pytest.mark.parametrize("status", [502, 503, 529])
    def test_overloaded_statuses(self, status):
        err = _status_error(openai.APIStatusError, status)
        assert classify_llm_error(err) == LLMErrorKind.OVERLOADED

    def test_connection_error(self):
        assert classify_llm_error(openai.APIConnectionError(request=_REQUEST)) == LLMErrorKind.OVERLOADED

    def test_unknown(self):
        assert classify_llm_error(RuntimeError("boom")) == LLMErrorKind.UNKNOWN

    def test_passthrough(self):
        assert classify_llm_error(LLMError(LLMErrorKind.RATE_LIMITED)) == LLMErrorKind.RATE_LIMITED


def _client(create):
    client = MagicMock()
    client.chat.completions.create = create
    return client


def _response(text, prompt_tokens=12, completion_tokens=7):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


class TestOracleLLM:
    @pytest.mark.asyncio
    async def test_complete_chat_logs_usage(self):
        create = AsyncMock(return_value=_response("hello"))
        llm = OracleLLM(_client(create), TokenRateLimiter(10, 100_000))

        with patch("nexus_oracle.core.llm.log_llm_usage") as log_usage:
            completion = await llm.complete_chat(
                "sys", "user", model="gpt-4o", temperature=0.7, max_tokens=100, workflow="test", json_mode=True
            )

        assert completion.text == "hello"
        assert completion.tokens_input == 12
        kwargs = create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        log_usage.assert_called_once()
        assert log_usage.call_args.kwargs["workflow"] == "test"

    @pytest.mark.asyncio
    async def test_timeout_classified(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)

        llm = OracleLLM(_client(slow), TokenRateLimiter(10, 100_000), timeout_seconds=0.01)
        with pytest.raises(LLMError) as exc_info:
            await llm.complete_chat("sys", "user", model="m", temperature=0, max_tokens=10, workflow="t")
        assert exc_info.value.kind == LLMErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_sdk_error_classified(self):
        create = AsyncMock(side_effect=_status_error(openai.AuthenticationError, 401))
        llm = OracleLLM(_client(create), TokenRateLimiter(10, 100_000))
        with pytest.raises(LLMError) as exc_info:
            await llm.complete_chat("sys", "user", model="m", temperature=0, max_tokens=10, workflow="t")
        assert exc_info.value.kind == LLMErrorKind.INVALID_API_KEY

    @pytest.mark.asyncio
    async def test_rate_limiter_blocks_before_call(self):
        create = AsyncMock(return_value=_response("hi"))
        llm = OracleLLM(_client(create), TokenRateLimiter(1, 100_000))

        with patch("nexus_oracle.core.llm.log_llm_usage"):
            await llm.complete_chat("s", "u", model="m", temperature=0, max_tokens=10, workflow="t")
            with pytest.raises(LLMError) as exc_info:
                await llm.complete_chat("s", "u", model="m", temperature=0, max_tokens=10, workflow="t")

        assert exc_info.value.kind == LLMErrorKind.RATE_LIMITED
        assert create.await_count == 1


def test_estimate_tokens():
    assert estimate_tokens("") == 1
    assert estimate_tokens("x" * 400) == 101
