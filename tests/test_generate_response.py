"""Tests for answer generation and confidence scoring."""

import pytest

from nexus_oracle.chains.generate_response import (
    CANNED_RESPONSES,
    DEGRADED_CONFIDENCE_CAP,
    apology_response,
    compute_confidence,
    generate,
    system_prompt_for,
)
from nexus_oracle.core.config import get_settings
from nexus_oracle.core.errors import LLMError, LLMErrorKind
from nexus_oracle.core.schemas_oracle import Role
from tests.fakes.fake_llm import FakeLLM


class TestGenerate:
    @pytest.mark.asyncio
    async def test_primary_success(self):
        llm = FakeLLM("🚀 Nexus Oracle: Ship the smallest slice first.")
        result = await generate(system_prompt_for("builder"), "ctx", "how do I ship?", "builder", llm)

        assert result.answer.startswith("🚀 Nexus Oracle:")
        assert result.degraded is False
        assert result.model_used == get_settings().ORACLE_CHAT_MODEL
        _, user_message, kwargs = llm.calls[0]
        assert "Context:\nctx" in user_message
        assert user_message.endswith("Question: how do I ship?")
        assert kwargs["temperature"] == get_settings().ORACLE_TEMPERATURE

    @pytest.mark.asyncio
    async def test_overloaded_retries_fallback_once(self):
        llm = FakeLLM(LLMError(LLMErrorKind.OVERLOADED), "🌟 Nexus Guide: Ask what they learned.")
        result = await generate(system_prompt_for("mentor"), "", "q", "mentor", llm)

        settings = get_settings()
        assert [c[2]["model"] for c in llm.calls] == [settings.ORACLE_CHAT_MODEL, settings.ORACLE_FALLBACK_MODEL]
        assert result.model_used == settings.ORACLE_FALLBACK_MODEL
        assert result.degraded is False
        # identical parameters apart from the model
        first, second = dict(llm.calls[0][2]), dict(llm.calls[1][2])
        first.pop("model")
        second.pop("model")
        assert first == second
        assert llm.calls[0][:2] == llm.calls[1][:2]

    @pytest.mark.asyncio
    async def test_overloaded_twice_is_canned(self):
        llm = FakeLLM(LLMError(LLMErrorKind.OVERLOADED), LLMError(LLMErrorKind.OVERLOADED))
        result = await generate(system_prompt_for("lead"), "", "q", "lead", llm)

        assert len(llm.calls) == 2
        assert result.answer == CANNED_RESPONSES[Role.LEAD]
        assert result.degraded is True
        assert result.model_used == "fallback"

    @pytest.mark.parametrize(
        "kind",
        [
            LLMErrorKind.INVALID_API_KEY,
            LLMErrorKind.CONTEXT_LENGTH_EXCEEDED,
            LLMErrorKind.RATE_LIMITED,
            LLMErrorKind.TIMEOUT,
            LLMErrorKind.UNKNOWN,
        ],
    )
    @pytest.mark.asyncio
    async def test_other_failures_no_retry(self, kind):
        llm = FakeLLM(LLMError(kind))
        result = await generate(system_prompt_for("guest"), "", "q", "guest", llm)

        assert len(llm.calls) == 1
        assert result.answer == CANNED_RESPONSES[Role.GUEST]
        assert result.degraded is True
        assert result.error_kind == kind

    @pytest.mark.asyncio
    async def test_headings_stripped(self):
        llm = FakeLLM("## Plan\n🚀 Nexus Oracle: do the thing")
        result = await generate("sys", "", "q", "builder", llm)
        assert "#" not in result.answer

    @pytest.mark.asyncio
    async def test_empty_answer_is_canned(self):
        llm = FakeLLM("   ")
        result = await generate("sys", "", "q", "builder", llm)
        assert result.degraded is True


class TestPrompts:
    @pytest.mark.parametrize(
        "role,prefix",
        [("builder", "🚀 Nexus Oracle"), ("mentor", "🌟 Nexus Guide"), ("lead", "⚡ Nexus Command"), ("guest", "🌟 Welcome to Nexus")],
    )
    def test_persona_prefixes(self, role, prefix):
        assert prefix in system_prompt_for(role)
        assert CANNED_RESPONSES[Role(role)].startswith(prefix)
        assert apology_response(role).startswith(prefix)

    def test_guest_prompt_forbids_names(self):
        assert "must not name" in system_prompt_for(Role.GUEST)


class TestConfidence:
    def test_base(self):
        assert compute_confidence(False, False, False, False) == 75

    def test_profile_and_team(self):
        assert compute_confidence(True, True, False, False) == 100

    def test_capped(self):
        assert compute_confidence(True, True, True, True) == 100

    def test_partial(self):
        assert compute_confidence(False, True, True, False) == 90
        assert compute_confidence(False, False, False, True) == 85

    def test_degraded_capped(self):
        assert compute_confidence(True, True, True, True, degraded=True) == DEGRADED_CONFIDENCE_CAP
