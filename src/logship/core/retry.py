"""
Retry policy with capped exponential backoff.

Each call site builds its own policy: the shipper wraps the describe step
in an inner policy and the whole describe + append sequence in an outer one.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from .exceptions import RetryExhaustedError, is_retryable

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, BaseException, float], None]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff executor.

    The delay after the n-th failed attempt is
    ``min(base_delay * 2 ** (n - 1), max_delay)``, optionally jittered
    uniformly down to zero.
    """

    base_delay: float = 1.0
    max_delay: float = 60.0
    max_attempts: int = 4
    jitter: bool = False
    name: str = "retry"

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Backoff delay in seconds after the given (1-based) failed attempt."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay = random.uniform(0, delay)
        return delay

    async def retry(
        self,
        operation: Callable[[], Awaitable[T]],
        on_retry: Optional[RetryCallback] = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds or the attempt budget is spent.

        Non-retryable errors propagate immediately. When every attempt fails
        with a retryable error, RetryExhaustedError is raised carrying the
        last error.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if not is_retryable(e):
                    logger.debug(
                        "Non-retryable error, giving up",
                        policy=self.name,
                        attempt=attempt,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise

                if attempt >= self.max_attempts:
                    raise RetryExhaustedError(self.max_attempts, e) from e

                delay = self.delay_for(attempt)
                logger.debug(
                    "Attempt failed, backing off",
                    policy=self.name,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_seconds=delay,
                    error=str(e),
                )
                if on_retry is not None:
                    on_retry(attempt, e, delay)
                await asyncio.sleep(delay)

