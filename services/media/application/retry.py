"""Retry policy for object-store part uploads."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from services.media.domain.errors import TransientUpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient_error(exc: BaseException) -> bool:
    """Connection resets, timeouts and unreachable hosts are retryable."""
    if isinstance(exc, TransientUpstreamError):
        return True
    return isinstance(exc, (ConnectionError, TimeoutError))


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with jitter for transient failures.

    ``max_attempts`` counts the first try. Delays are ``base_delay * 2**(n-1)``
    seconds capped at ``max_delay``, plus up to ``jitter`` of that value.
    """

    max_attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 4.0
    jitter: float = 0.1
    is_retryable: Callable[[BaseException], bool] = is_transient_error
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < self.base_delay:
            raise ValueError("delays must satisfy 0 <= base_delay <= max_delay")

    def delay_for(self, attempt: int) -> float:
        if attempt <= 0:
            return 0.0
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        if self.jitter > 0 and delay > 0:
            delay += self.rng.uniform(0, delay * self.jitter)
        return delay

    async def run(
        self, operation: Callable[[], Awaitable[T]], *, description: str = "operation"
    ) -> T:
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                if attempt >= self.max_attempts or not self.is_retryable(exc):
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s failed on attempt %s/%s (%s); retrying in %.2fs",
                    description,
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                await self.sleep(delay)
                attempt += 1
