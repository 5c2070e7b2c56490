"""
Retry policy for Lightdash API operations

Exponential backoff around a single async operation. Client errors are
recognized by status markers in the error message and are never retried.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from lightdash_mcp.logging import get_logger
from lightdash_mcp.telemetry import record_retry, record_error

from .config import get_retry_config

logger = get_logger('RETRY')

T = TypeVar('T')

# Substrings marking auth and client errors. Matching is on the message text
# only, so an unrelated message containing e.g. "404" is also not retried.
NON_RETRYABLE_MARKERS = ("401", "403", "400", "404")


def is_retryable_error(error: BaseException) -> bool:
    """False when the error message carries a non-retryable status marker."""
    message = str(error)
    return not any(marker in message for marker in NON_RETRYABLE_MARKERS)


async def _wait(delay_ms: float) -> None:
    await asyncio.sleep(delay_ms / 1000.0)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: Optional[int] = None,
    initial_delay_ms: Optional[float] = None,
    max_delay_ms: Optional[float] = None
) -> T:
    """
    Run ``operation`` until it succeeds, retrying transient failures.

    The wait before attempt k+1 is ``initial_delay_ms * 2**(k-1)``. Growth is
    unbounded unless ``max_delay_ms`` is given, in which case each wait is
    clamped to it.

    Args:
        operation: Zero-argument coroutine function to run
        max_attempts: Total attempts, defaults to MAX_RETRIES
        initial_delay_ms: First wait in milliseconds, defaults to RETRY_DELAY
        max_delay_ms: Optional ceiling for a single wait

    Returns:
        The first successful result

    Raises:
        The most recent error, immediately when it is non-retryable or once
        attempts are exhausted
    """
    defaults = get_retry_config() if max_attempts is None or initial_delay_ms is None else None
    if max_attempts is None:
        max_attempts = defaults.max_attempts
    if initial_delay_ms is None:
        initial_delay_ms = defaults.initial_delay_ms
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    if initial_delay_ms < 0:
        raise ValueError(f"initial_delay_ms must not be negative, got {initial_delay_ms}")

    delay = initial_delay_ms
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_retryable_error(e):
                logger.debug(f"not retrying client error | attempt:{attempt} | error:{e}")
                raise

            if attempt >= max_attempts:
                logger.error(f"operation failed after {max_attempts} attempts | error:{e}")
                record_error(type(e).__name__, "with_retry", attempts=max_attempts)
                raise

            wait_ms = delay if max_delay_ms is None else min(delay, max_delay_ms)
            logger.warning(f"attempt {attempt} failed, retrying in {wait_ms}ms | error:{e}")
            record_retry(attempt, wait_ms)
            await _wait(wait_ms)

            delay *= 2
            attempt += 1
