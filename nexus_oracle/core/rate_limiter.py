"""In-memory rate limiters.

``RequestRateLimiter`` throttles inbound Oracle queries per requester.
``TokenRateLimiter`` throttles outbound language-model calls for one service
instance; it is constructed once and handed to the LLM client rather than
living at module level.
"""

import time
from collections import deque
from typing import Any, Callable

from fastapi import HTTPException

from nexus_oracle.core.errors import LLMError, LLMErrorKind
from nexus_oracle.core.logging import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60.0


class RequestRateLimiter:
    """
    Token bucket rate limiter keyed by requester.

    Uses in-memory storage; each worker process keeps its own buckets.
    """

    def __init__(
        self,
        requests_per_minute: int = 20,
        burst_size: int = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            requests_per_minute: Sustained rate limit
            burst_size: Maximum burst size
            clock: Time source (seconds), injectable for tests
        """
        self.requests_per_minute = requests_per_minute
        self.burst_size = burst_size
        self.refill_rate = requests_per_minute / 60.0  # tokens per second
        self._clock = clock

        # key -> (tokens, last_refill_time)
        self._buckets: dict[str, tuple[float, float]] = {}

    def _refill_bucket(self, key: str) -> tuple[float, float]:
        now = self._clock()
        current_tokens, last_refill = self._buckets.get(key, (float(self.burst_size), now))
        elapsed = now - last_refill
        new_tokens = min(self.burst_size, current_tokens + elapsed * self.refill_rate)
        self._buckets[key] = (new_tokens, now)
        return new_tokens, now

    def check_limit(self, key: str, cost: float = 1.0) -> None:
        """
        Consume ``cost`` tokens for ``key``.

        Raises:
            HTTPException: 429 if rate limited
        """
        current_tokens, last_refill = self._refill_bucket(key)

        if current_tokens >= cost:
            self._buckets[key] = (current_tokens - cost, last_refill)
            return

        retry_after = int((cost - current_tokens) / self.refill_rate) + 1
        logger.warning(
            f"Rate limit exceeded for key: {key}, "
            f"tokens: {current_tokens:.2f}/{self.burst_size}, "
            f"retry after: {retry_after}s"
        )
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )

    def reset(self, key: str) -> None:
        self._buckets.pop(key, None)


class TokenRateLimiter:
    """
    Sliding one-minute window over LLM requests and estimated tokens.

    Each ``check_limit`` call records one request. Exceeding either budget
    raises ``LLMError(RATE_LIMITED)`` so callers degrade the same way they do
    for a provider-side 429.
    """

    def __init__(
        self,
        requests_per_minute: int,
        tokens_per_minute: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.requests_per_minute = requests_per_minute
        self.tokens_per_minute = tokens_per_minute
        self._clock = clock
        self._window: deque[tuple[float, int]] = deque()
        self._tokens_in_window = 0

    def _evict(self, now: float) -> None:
        while self._window and now - self._window[0][0] >= WINDOW_SECONDS:
            _, tokens = self._window.popleft()
            self._tokens_in_window -= tokens

    def check_limit(self, estimated_tokens: int) -> None:
        """
        Reserve capacity for one call of ``estimated_tokens``.

        Raises:
            LLMError: kind RATE_LIMITED when the request or token budget is spent
        """
        now = self._clock()
        self._evict(now)

        if len(self._window) >= self.requests_per_minute:
            logger.warning(
                f"LLM request budget exhausted: {len(self._window)}/{self.requests_per_minute} per minute"
            )
            raise LLMError(LLMErrorKind.RATE_LIMITED, "LLM request budget exhausted")

        if self._tokens_in_window + estimated_tokens > self.tokens_per_minute:
            logger.warning(
                f"LLM token budget exhausted: {self._tokens_in_window}+{estimated_tokens}"
                f"/{self.tokens_per_minute} per minute"
            )
            raise LLMError(LLMErrorKind.RATE_LIMITED, "LLM token budget exhausted")

        self._window.append((now, estimated_tokens))
        self._tokens_in_window += estimated_tokens

    def get_stats(self) -> dict[str, Any]:
        self._evict(self._clock())
        return {
            "requests_in_window": len(self._window),
            "tokens_in_window": self._tokens_in_window,
            "requests_per_minute": self.requests_per_minute,
            "tokens_per_minute": self.tokens_per_minute,
        }
