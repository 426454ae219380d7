"""
Retry policy for remote model calls.

Bounded attempts with linear backoff (attempt x base_delay). Transient
failures are retried, fatal ones propagate immediately. Waiting uses an
awaitable sleep, so a cancelled request abandons the pending delay.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from app.services.errors import (
    AIServiceError,
    RetryExhaustedError,
    classify_openai_error,
    is_transient_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.5  # seconds


@dataclass(frozen=True)
class RetryPolicy:
    """
    Explicit retry policy.

    Attributes:
        max_attempts: Total attempts, including the first one
        base_delay: Seconds multiplied by the attempt number between retries
        is_transient: Classifier mapping an exception to retryable or not
        sleep: Awaitable delay function (asyncio.sleep by default)
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    is_transient: Callable[[BaseException], bool] = is_transient_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep)

    def backoff(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return attempt * self.base_delay

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "remote call",
        log_tag: Optional[str] = None,
    ) -> T:
        """
        Run ``operation`` under this policy.

        Raises:
            RetryExhaustedError: every attempt failed with a transient error
            Exception: the first fatal error, unchanged
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if not self.is_transient(e):
                    logger.error(f"{description} fatal error for {log_tag}: {e}")
                    raise

                logger.warning(
                    f"{description} transient error on attempt "
                    f"{attempt}/{self.max_attempts} for {log_tag}: {e}"
                )
                if attempt >= self.max_attempts:
                    info = e.info if isinstance(e, AIServiceError) else classify_openai_error(e)
                    raise RetryExhaustedError(
                        f"{description} failed after {attempt} attempts: {info.message}",
                        info=info,
                        attempts=attempt,
                    ) from e

                await self.sleep(self.backoff(attempt))
