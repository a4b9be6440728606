"""Retry helper for provider fetches with exponential backoff."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

_TRANSIENT_KEYWORDS = ("timeout", "connection", "network", "temporary", "unavailable")


def is_transient_provider_error(error: Exception) -> bool:
    """Check if a provider error is transient and worth retrying.

    Covers standard exception types (asyncio.TimeoutError, ConnectionError,
    TimeoutError) and falls back to keyword matching for client-library errors.
    """
    if isinstance(error, (asyncio.TimeoutError, ConnectionError, TimeoutError)):
        return True

    error_str = str(error).lower()
    return any(keyword in error_str for keyword in _TRANSIENT_KEYWORDS)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    retry_delay: float = 1.0,
    is_transient_error: Callable[[Exception], bool] = is_transient_provider_error,
    description: str = "operation",
) -> T:
    """Execute an async operation, retrying transient errors with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        max_retries: Maximum number of retry attempts after the first call
        retry_delay: Initial delay in seconds, doubled on every retry
        is_transient_error: Decides whether an error is worth retrying
        description: Label used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        ValueError: If max_retries or retry_delay are negative
        Exception: The last error when it is not transient or retries are exhausted
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")  # noqa: TRY003
    if retry_delay < 0:
        raise ValueError("retry_delay must be >= 0")  # noqa: TRY003

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            attempt += 1
            if attempt > max_retries or not is_transient_error(e):
                if attempt > max_retries and max_retries > 0:
                    logger.warning(f"Max retries ({max_retries}) exceeded for {description}")
                raise

            delay = retry_delay * (2 ** (attempt - 1))
            logger.warning(
                f"Transient error in {description} on attempt {attempt}/{max_retries + 1}: {e}. "
                f"Retrying in {delay}s..."
            )
            await asyncio.sleep(delay)
