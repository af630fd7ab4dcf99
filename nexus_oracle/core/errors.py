"""Error taxonomy for the Oracle pipeline.

Validation errors fail fast with a machine-readable ``code`` and ``field``.
Upstream language-model failures are classified into ``LLMErrorKind`` so the
response generator can decide between a fallback-model retry and a canned
answer. Command failures are not exceptions (see ``CommandResult``).
"""

import asyncio
from enum import Enum

import openai


class OracleError(Exception):
    """Base error rendered by the API as a structured JSON body."""

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status: int = 500,
        field: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.field:
            body["field"] = self.field
        return body


class OracleValidationError(OracleError):
    """Malformed or missing request fields (400)."""

    def __init__(self, message: str, field: str | None = None, code: str = "invalid_request"):
        super().__init__(message, code=code, status=400, field=field)


class CommandValidationError(OracleValidationError):
    """A parsed command is missing required fields or carries oversized content.

    Raised by the command executor before any write is attempted.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, field=field, code="invalid_command")


class LLMErrorKind(str, Enum):
    OVERLOADED = "overloaded"
    INVALID_API_KEY = "invalid_api_key"
    CONTEXT_LENGTH_EXCEEDED = "context_length_exceeded"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class LLMError(OracleError):
    """Classified failure from the language-model backend."""

    def __init__(self, kind: LLMErrorKind, message: str = ""):
        super().__init__(message or kind.value, code=f"llm_{kind.value}", status=502)
        self.kind = kind


_OVERLOADED_STATUSES = {502, 503, 529}


def classify_llm_error(exc: BaseException) -> LLMErrorKind:
    """Map an OpenAI SDK (or asyncio) exception onto an ``LLMErrorKind``."""
    if isinstance(exc, LLMError):
        return exc.kind
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, openai.APITimeoutError)):
        return LLMErrorKind.TIMEOUT
    if isinstance(exc, openai.AuthenticationError):
        return LLMErrorKind.INVALID_API_KEY
    if isinstance(exc, openai.RateLimitError):
        return LLMErrorKind.RATE_LIMITED
    if isinstance(exc, openai.BadRequestError):
        if getattr(exc, "code", None) == "context_length_exceeded" or "maximum context length" in str(exc):
            return LLMErrorKind.CONTEXT_LENGTH_EXCEEDED
        return LLMErrorKind.UNKNOWN
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code in _OVERLOADED_STATUSES or "overloaded" in str(exc).lower():
            return LLMErrorKind.OVERLOADED
        return LLMErrorKind.UNKNOWN
    if isinstance(exc, openai.APIConnectionError):
        return LLMErrorKind.OVERLOADED
    return LLMErrorKind.UNKNOWN
