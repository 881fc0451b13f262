"""Backoff retries for outbound HTTP calls (oEmbed, Apify)."""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Seconds to wait after failed attempt ``attempt`` (zero-based), capped at ``max_delay``."""
    return min(base_delay * (2**attempt), max_delay)


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    max_delay: float = 10.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry a coroutine function on the listed exception types.

    Anything not listed propagates on the first attempt. After the last
    attempt the final exception is re-raised unchanged.

    Args:
        max_attempts: Attempts including the first
        base_delay: Delay after the first failure, doubled per attempt
        exceptions: Exception types worth retrying
        max_delay: Cap for a single delay
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    attempt += 1
                    if attempt >= max_attempts:
                        logger.error(f"{func.__name__}: gave up after {attempt} attempts: {e!r}")
                        raise
                    delay = backoff_delay(attempt - 1, base_delay, max_delay)
                    logger.warning(
                        f"{func.__name__}: attempt {attempt}/{max_attempts} failed ({e!r}), "
                        f"retrying in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)

        return wrapper  # type: ignore

    return decorator
