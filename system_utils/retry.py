"""
Exponential backoff for flaky async operations.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterator, Optional, TypeVar

from .errors import RequestCancelledError
from logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def backoff_delays(
    max_retries: int,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_multiplier: float = 2.0
) -> Iterator[float]:
    """Yields the wait before each retry: initial, initial*m, ... capped at max_delay."""
    delay = initial_delay
    for _ in range(max_retries):
        yield min(delay, max_delay)
        delay = min(delay * backoff_multiplier, max_delay)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    backoff_multiplier: float = 2.0,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    name: str = "operation"
) -> T:
    """
    Await operation() up to max_retries + 1 times.

    Attempts are strictly sequential. The last error, or any error for which
    should_retry() is False, is re-raised unchanged. Cancelled requests are
    never retried.
    """
    delays = backoff_delays(max_retries, initial_delay, max_delay, backoff_multiplier)

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as error:
            if isinstance(error, RequestCancelledError):
                raise
            if attempt >= max_retries or (should_retry is not None and not should_retry(error)):
                raise

            delay = next(delays)
            attempt += 1
            logger.debug(f"{name} failed ({type(error).__name__}: {error}), retry {attempt}/{max_retries} in {delay:.2f}s")
            await asyncio.sleep(delay)
