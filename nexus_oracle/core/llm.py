"""Language-model client and strict output decoding."""

import asyncio
import json
import re
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from nexus_oracle.core.config import get_settings
from nexus_oracle.core.errors import LLMError, classify_llm_error
from nexus_oracle.core.llm_usage import log_llm_usage
from nexus_oracle.core.logging import get_logger
from nexus_oracle.core.rate_limiter import TokenRateLimiter

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class LLMOutputError(ValueError):
    """Model output did not conform to the expected schema."""


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 chars per token)."""
    return len(text or "") // 4 + 1


def _strip_llm_fences(raw_output: str) -> str:
    """Strip markdown code fences from LLM output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()
    fence_match = re.fullmatch(r"```(?:json)?\s*\n?(.*?)\n?```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()
    return cleaned


def decode_llm_json(raw_output: str, model: type[T]) -> T:
    """
    Decode LLM output into a Pydantic model, rejecting anything non-conforming.

    Only a single JSON object (optionally wrapped in one code fence) is
    accepted. Prose around the object, arrays, and schema mismatches are
    rejected rather than repaired.

    Raises:
        LLMOutputError: If the output is not a JSON object matching ``model``
    """
    cleaned = _strip_llm_fences(raw_output or "")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise LLMOutputError(f"Output is not valid JSON: {e.msg}") from e

    if not isinstance(payload, dict):
        raise LLMOutputError(f"Expected a JSON object, got {type(payload).__name__}")

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise LLMOutputError(f"Output failed {model.__name__} validation: {e.error_count()} errors") from e


@dataclass
class ChatCompletion:
    text: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    duration_ms: int = 0


class OracleLLM:
    """
    Chat-completion client shared by the intent parser and response generator.

    Every call is checked against the injected ``TokenRateLimiter`` and bounded
    by ``timeout_seconds``. Failures surface as ``LLMError`` with a classified
    kind; the raw SDK exception is chained.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        rate_limiter: TokenRateLimiter,
        timeout_seconds: float = 30.0,
    ):
        self._client = client
        self._rate_limiter = rate_limiter
        self._timeout_seconds = timeout_seconds

    @property
    def rate_limiter(self) -> TokenRateLimiter:
        return self._rate_limiter

    async def complete_chat(
        self,
        system_prompt: str,
        user_message: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        workflow: str,
        json_mode: bool = False,
        user_id: str | None = None,
        team_id: str | None = None,
    ) -> ChatCompletion:
        estimated = estimate_tokens(system_prompt) + estimate_tokens(user_message) + max_tokens
        self._rate_limiter.check_limit(estimated)

        kwargs = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        start = time.time()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self._timeout_seconds,
            )
        except Exception as e:
            kind = classify_llm_error(e)
            logger.warning(f"LLM call failed ({workflow}, model={model}): kind={kind.value} error={e}")
            raise LLMError(kind, str(e)) from e

        duration_ms = int((time.time() - start) * 1000)
        text = (response.choices[0].message.content or "") if response.choices else ""
        usage = getattr(response, "usage", None)
        tokens_input = int(getattr(usage, "prompt_tokens", 0) or 0)
        tokens_output = int(getattr(usage, "completion_tokens", 0) or 0)

        log_llm_usage(
            workflow=workflow,
            model=model,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            duration_ms=duration_ms,
            user_id=user_id,
            team_id=team_id,
        )

        return ChatCompletion(
            text=text,
            model=model,
            tokens_input=tokens_input,
            tokens_output=tokens_output,
            duration_ms=duration_ms,
        )


@lru_cache(maxsize=1)
def get_oracle_llm() -> OracleLLM:
    """Build the process-wide LLM client with its own rate limiter."""
    settings = get_settings()
    return OracleLLM(
        client=AsyncOpenAI(api_key=settings.OPENAI_API_KEY),
        rate_limiter=TokenRateLimiter(
            requests_per_minute=settings.LLM_REQUESTS_PER_MINUTE,
            tokens_per_minute=settings.LLM_TOKENS_PER_MINUTE,
        ),
        timeout_seconds=settings.LLM_TIMEOUT_SECONDS,
    )
