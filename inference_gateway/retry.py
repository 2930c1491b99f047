"""
Inference Gateway SDK - Retry Logic

Exponential backoff with jitter for non-streaming requests.

Streaming calls are never retried: once content has been delivered to
callbacks, a second attempt would deliver it again.
"""

import asyncio
import random
import time
from typing import Awaitable, Callable, List, Optional, TypeVar

from .errors import InferenceGatewayError, RateLimitError
from .observability.logging import get_logger


T = TypeVar("T")

logger = get_logger(__name__)

DEFAULT_RETRY_STATUS = (429, 500, 502, 503, 504)


def calculate_backoff(
    attempt: int,
    initial_delay: float = 0.5,
    max_delay: float = 8.0,
    exponential_base: float = 2.0,
    jitter: bool = True
) -> float:
    """
    Calculate delay for exponential backoff with optional jitter.

    Args:
        attempt: Current retry attempt (0-based)
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential calculation
        jitter: Whether to add random jitter (up to 25%)

    Returns:
        Delay in seconds
    """
    delay = min(initial_delay * (exponential_base ** attempt), max_delay)

    if jitter:
        jitter_range = delay * 0.25
        delay = delay + random.uniform(-jitter_range, jitter_range)

    return max(0, delay)


def should_retry(
    error: Exception,
    retry_on_status: Optional[List[int]] = None
) -> bool:
    """
    Determine if an error should be retried.

    Args:
        error: The exception that was raised
        retry_on_status: HTTP status codes to retry on

    Returns:
        True if the request should be retried
    """
    if not isinstance(error, InferenceGatewayError):
        return False

    statuses = DEFAULT_RETRY_STATUS if retry_on_status is None else retry_on_status
    return error.retryable or error.status_code in statuses


class RetryHandler:
    """
    Configurable retry handler for gateway requests.

    Example:
        handler = RetryHandler(max_retries=5, initial_delay=0.25)
        models = handler.execute(lambda: client._request("GET", "/models"))
    """

    def __init__(
        self,
        max_retries: int = 2,
        initial_delay: float = 0.5,
        max_delay: float = 8.0,
        exponential_base: float = 2.0,
        retry_on_status: Optional[List[int]] = None,
        on_retry: Optional[Callable[[int, Exception, float], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        async_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.retry_on_status = list(retry_on_status or DEFAULT_RETRY_STATUS)
        self.on_retry = on_retry
        self._sleep = sleep
        self._async_sleep = async_sleep

    def _next_delay(self, attempt: int, error: Exception) -> Optional[float]:
        """Delay before the next attempt, or None to give up."""
        if attempt >= self.max_retries or not should_retry(error, self.retry_on_status):
            return None

        if isinstance(error, RateLimitError):
            # Honour the server's Retry-After, capped like any other delay
            delay = min(float(error.retry_after), self.max_delay)
        else:
            delay = calculate_backoff(
                attempt,
                self.initial_delay,
                self.max_delay,
                self.exponential_base
            )

        logger.info(
            "Retrying gateway request",
            attempt=attempt + 1,
            max_retries=self.max_retries,
            delay_seconds=round(delay, 3),
            error=str(error),
        )
        if self.on_retry:
            self.on_retry(attempt, error, delay)
        return delay

    def execute(self, func: Callable[[], T]) -> T:
        """
        Execute a function with retry logic.

        Args:
            func: A callable that takes no arguments

        Returns:
            The result of the function call
        """
        attempt = 0
        while True:
            try:
                return func()
            except Exception as e:
                delay = self._next_delay(attempt, e)
                if delay is None:
                    raise
            self._sleep(delay)
            attempt += 1

    async def execute_async(self, func: Callable[[], Awaitable[T]]) -> T:
        """
        Execute an async function with retry logic.

        Args:
            func: An async callable that takes no arguments

        Returns:
            The result of the function call
        """
        attempt = 0
        while True:
            try:
                return await func()
            except Exception as e:
                delay = self._next_delay(attempt, e)
                if delay is None:
                    raise
            await self._async_sleep(delay)
            attempt += 1
