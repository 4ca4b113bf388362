"""Bounded async retry with linear backoff.

Shared by batch transcription and durable writes. Each attempt runs under
its own timeout; a timeout counts as a retryable failure.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    """Raised when every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before the next attempt: base times the 1-based attempt index."""
    return base_delay * attempt


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    timeout: float | None = None,
    is_retryable: Callable[[BaseException], bool] = lambda e: True,
    description: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or attempts run out.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        max_attempts: Total attempts including the first.
        base_delay: Backoff base in seconds (1s, 2s, ... between attempts).
        timeout: Per-attempt timeout in seconds, None for unbounded.
        is_retryable: Decides whether a raised exception may be retried.
        description: Label used in log messages.

    Returns:
        The operation's result.

    Raises:
        RetryExhausted: All attempts failed with retryable errors.
        Exception: The first non-retryable error, unchanged.
    """
    last_error: BaseException | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            if timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout)
        except Exception as e:
            if not isinstance(e, asyncio.TimeoutError) and not is_retryable(e):
                raise
            last_error = e
            if attempt < max_attempts:
                delay = backoff_delay(attempt, base_delay)
                logger.warning(
                    "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                    description,
                    attempt,
                    max_attempts,
                    delay,
                    str(e) or type(e).__name__,
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    "%s failed after %d attempts: %s",
                    description,
                    max_attempts,
                    str(e) or type(e).__name__,
                )

    if last_error is None:
        raise RuntimeError("Unexpected retry loop exit")
    raise RetryExhausted(max_attempts, last_error)


__all__ = ["RetryExhausted", "backoff_delay", "retry_async"]
