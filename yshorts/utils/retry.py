"""
Retry Decorator with Backoff
Automatic retry logic for transient failures
"""

import asyncio
import functools
import random
from typing import Type, Tuple, Optional, Callable

from .logger import get_logger

logger = get_logger()


def compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    backoff: str = "exponential",
    exponential_base: float = 2.0
) -> float:
    """
    Delay before the retry that follows failed attempt number ``attempt`` (1-based).

    ``linear`` waits base_delay * attempt, ``exponential`` waits
    base_delay * exponential_base ** (attempt - 1). Both are capped at max_delay.
    """
    if backoff == "linear":
        delay = base_delay * attempt
    elif backoff == "exponential":
        delay = base_delay * (exponential_base ** (attempt - 1))
    else:
        raise ValueError(f"Unknown backoff strategy: {backoff}")
    return min(delay, max_delay)


def retry_async(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff: str = "exponential",
    exponential_base: float = 2.0,
    jitter: bool = False,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    giveup: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[Exception, int], None]] = None
):
    """
    Async retry decorator with linear or exponential backoff

    Args:
        max_attempts: Total number of attempts, including the first one
        base_delay: Delay unit between attempts in seconds
        max_delay: Maximum delay between attempts
        backoff: "linear" or "exponential"
        exponential_base: Base for exponential backoff calculation
        jitter: Add random jitter to prevent thundering herd
        retryable_exceptions: Tuple of exception types to retry on
        giveup: Optional predicate; returning True stops retrying immediately
        on_retry: Optional callback called before each retry (exception, attempt)
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)

                except retryable_exceptions as e:
                    if giveup is not None and giveup(e):
                        logger.error(f"Non-retryable error in {func.__name__}: {e}")
                        raise

                    if attempt >= max_attempts:
                        logger.error(
                            f"Max attempts ({max_attempts}) exceeded for {func.__name__}: {e}"
                        )
                        raise

                    delay = compute_delay(attempt, base_delay, max_delay, backoff, exponential_base)
                    if jitter:
                        delay = delay * (0.5 + random.random())

                    logger.warning(
                        f"Retry {attempt}/{max_attempts - 1} for {func.__name__} "
                        f"after {delay:.1f}s: {str(e)[:100]}"
                    )

                    if on_retry:
                        on_retry(e, attempt)

                    await asyncio.sleep(delay)

        return wrapper
    return decorator
