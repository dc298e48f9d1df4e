"""
Reliability Utilities.

Retry with exponential backoff for retryable application errors.
Only errors flagged retryable (PersistenceError) are retried; everything else
propagates on the first attempt.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from backend.app.core.exceptions import AppException

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    attempts: int = 3,
    base_delay: float = 0.2,
    max_delay: float = 5.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Call func until it succeeds or attempts run out.

    Delay doubles after each failed attempt: base_delay, 2*base_delay, ...
    capped at max_delay. The last retryable error is re-raised.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    attempt = 1
    while True:
        try:
            return await func()
        except AppException as exc:
            if not exc.retryable or attempt >= attempts:
                raise
            delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
            logger.warning(
                "Retryable error %s (attempt %d/%d), retrying in %.2fs",
                exc.error_code, attempt, attempts, delay,
            )
            await sleep(delay)
            attempt += 1
