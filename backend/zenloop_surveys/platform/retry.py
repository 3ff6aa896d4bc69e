"""
Bounded retry policy for outbound API calls.

Used for Shopify Admin GraphQL reads only. Mutations are never retried,
and Zenloop lookups are never retried (a failed lookup is a rejection).

Usage:
    policy = RetryPolicy(max_attempts=3, backoff=linear_backoff(1.0))
    data = await policy.run(lambda: client.execute(query), operation="get_metafield")
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from zenloop_surveys.platform.errors import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(step_seconds: float = 1.0) -> Callable[[int], float]:
    """Delay after failed attempt N (1-indexed) is N * step_seconds."""

    def _backoff(attempt: int) -> float:
        return step_seconds * attempt

    return _backoff


def is_retryable_upstream_error(error: BaseException) -> bool:
    return isinstance(error, UpstreamError)


@dataclass
class RetryPolicy:
    """Max attempts, backoff function and retryable-error predicate."""
    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=linear_backoff)
    retryable: Callable[[BaseException], bool] = is_retryable_upstream_error
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def run(self, call: Callable[[], Awaitable[T]], operation: str = "") -> T:
        """
        Invoke ``call`` until it succeeds or attempts are exhausted.

        Non-retryable errors propagate immediately. The last error is
        re-raised once max_attempts is reached.
        """
        attempt = 1
        while True:
            try:
                return await call()
            except Exception as e:
                if not self.retryable(e) or attempt >= self.max_attempts:
                    raise

                delay = self.backoff(attempt)
                logger.warning("Retrying after failed attempt", extra={
                    "operation": operation,
                    "attempt": attempt,
                    "max_attempts": self.max_attempts,
                    "delay_seconds": delay,
                    "error_type": type(e).__name__,
                })
                await self.sleep(delay)
                attempt += 1


NO_RETRY = RetryPolicy(max_attempts=1)
