"""Retry handler with exponential backoff and per-attempt timeouts."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional, Tuple

from resilient_fetch.fetcher.errors import FetchError, RequestTimeoutError
from resilient_fetch.monitoring.logger import StructuredLogger


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: Optional[float] = None,
    jitter_max: float = 0.0
) -> float:
    """
    Calculate exponential backoff delay.

    Formula: base_delay * (2 ** attempt) + random_jitter, capped at max_delay

    Args:
        attempt: Index of the attempt that just failed (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Optional maximum delay cap in seconds
        jitter_max: Maximum jitter to add in seconds

    Returns:
        Delay in seconds
    """
    delay = base_delay * (2 ** attempt)
    if jitter_max > 0:
        delay += random.uniform(0, jitter_max)
    if max_delay is not None:
        delay = min(max_delay, delay)
    return delay


class RetryHandler:
    """
    Runs one logical request as a bounded sequence of attempts.

    Retries on: timeouts, connection errors, 5xx/408/429 responses
    Attempts: max_retries + 1
    Backoff: base_delay * 2**n between attempt n and n+1, none after the last

    The handler never talks to the circuit breaker; the caller records the
    outcome of the whole sequence exactly once.
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: Optional[float] = None,
        jitter_max: float = 0.0,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize retry handler.

        Args:
            base_delay: Base delay for exponential backoff
            max_delay: Optional maximum delay cap
            jitter_max: Maximum jitter to add
            sleeper: Async sleep function (default: asyncio.sleep)
            logger: Optional structured logger for attempt failures
        """
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_max = jitter_max
        self._sleep = sleeper
        self.logger = logger

    def is_retryable(self, error: BaseException) -> bool:
        """
        Check if error is retryable.

        Anything that is not a FetchError is a bug in the operation and is
        not retried.
        """
        if isinstance(error, FetchError):
            return error.retryable
        return False

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        max_retries: int = 3,
        timeout: float = 10.0,
        label: str = ""
    ) -> Tuple[Any, int]:
        """
        Execute operation with retry logic.

        Args:
            operation: Zero-argument coroutine function performing one attempt
            max_retries: Retries after the first attempt
            timeout: Per-attempt deadline in seconds
            label: Identifier used in log records

        Returns:
            Tuple of (result, attempts made)

        Raises:
            FetchError: The last failure, with ``attempts`` set; exceptions outside
                the FetchError hierarchy are wrapped as non-retryable failures
        """
        total_attempts = max_retries + 1
        last_error = FetchError("no attempts made")

        for attempt in range(total_attempts):
            try:
                result = await asyncio.wait_for(operation(), timeout=timeout)
                return result, attempt + 1
            except asyncio.TimeoutError:
                error: FetchError = RequestTimeoutError(f"Request timeout after {timeout}s")
            except FetchError as e:
                error = e
            except Exception as e:
                error = FetchError(f"Unexpected error: {type(e).__name__}: {e}", retryable=False)
                error.__cause__ = e

            error.attempts = attempt + 1
            last_error = error
            is_last = attempt >= total_attempts - 1
            retryable = self.is_retryable(error)
            delay = None
            if retryable and not is_last:
                delay = calculate_backoff_delay(
                    attempt,
                    self.base_delay,
                    self.max_delay,
                    self.jitter_max
                )

            if self.logger:
                self.logger.attempt_failed(
                    url=label,
                    attempt=attempt + 1,
                    error=str(error),
                    retryable=retryable,
                    delay=delay
                )

            if delay is None:
                raise error

            await self._sleep(delay)

        # Should not reach here, but raise last error if we do
        raise last_error
