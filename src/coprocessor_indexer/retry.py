"""RetryPolicy for supervisor attempts: attempt ceiling plus exponential backoff."""

from __future__ import annotations

import asyncio
import random

from .exceptions import FATAL_ERRORS

DEFAULT_MAX_ATTEMPTS = 6


class RetryPolicy:
    """Decides whether a failed pipeline attempt is retried, and after how long.

    ``max_attempts`` counts every attempt including the first, so the default
    of 6 means a pipeline failing six times in a row is given up on.
    """

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        jitter: bool = False,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must be <= max_delay")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        """Configuration errors and invariant violations are never retried."""
        return not isinstance(error, FATAL_ERRORS)

    def should_retry(self, failed_attempts: int) -> bool:
        return failed_attempts < self.max_attempts

    def delay_for_attempt(self, failed_attempts: int) -> float:
        """Delay before the next attempt after ``failed_attempts`` failures.

        ``base_delay * 2 ** (failed_attempts - 1)`` capped by ``max_delay``;
        jitter scales it by a random factor in [0.5, 1.5].
        """
        if failed_attempts < 1:
            return 0.0
        delay = min(self.base_delay * (2 ** (failed_attempts - 1)), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()  # noqa: S311
        return float(max(0.0, delay))

    async def wait_before_retry(self, failed_attempts: int) -> None:
        delay = self.delay_for_attempt(failed_attempts)
        if delay > 0:
            await asyncio.sleep(delay)
