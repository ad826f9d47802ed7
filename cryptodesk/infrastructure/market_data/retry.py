"""Exponential backoff для market data requests.

Public market APIs (CoinGecko free tier) часто відповідають 429 або 5xx.
Такі помилки позначаються RetryableError і повторюються з зростаючою
затримкою; все інше пробрасується одразу.
"""

import asyncio
import inspect
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableError(Exception):
    """Transient failure that is worth another attempt.

    Example:
        >>> raise RetryableError("HTTP 429 from /coins/markets")
    """

    pass


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
) -> float:
    """Delay before retry number `attempt` (0-based), capped by max_delay."""
    return min(base_delay * (exponential_base**attempt), max_delay)


def retry_with_backoff(
    max_retries: int = 2,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    exponential_base: float = 2.0,
    retryable_exceptions: tuple[Type[BaseException], ...] = (RetryableError,),
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator для async functions: retry з exponential backoff.

    Args:
        max_retries: Extra attempts after the first one (0 = no retry).
        base_delay: First delay in seconds.
        max_delay: Upper bound for a single delay.
        exponential_base: Multiplier between consecutive delays.
        retryable_exceptions: Exceptions that trigger another attempt.

    Returns:
        Decorated coroutine function.

    Example:
        >>> @retry_with_backoff(max_retries=2, base_delay=0.5)
        ... async def fetch_global():
        ...     return await client.get("/global")
        >>> # attempt 1 fails → wait 0.5s, attempt 2 fails → wait 1s, attempt 3 fails → raise
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"retry_with_backoff supports async functions only: {func!r}")

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    result = await func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt >= max_retries:
                        logger.error(
                            "retry.exhausted",
                            extra={
                                "function": func.__name__,
                                "total_attempts": attempt + 1,
                                "error": str(e),
                            },
                        )
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay, exponential_base)
                    logger.warning(
                        "retry.attempt",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt + 1,
                            "max_retries": max_retries,
                            "delay_seconds": delay,
                            "error": str(e),
                        },
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue

                if attempt > 0:
                    logger.info(
                        "retry.success",
                        extra={"function": func.__name__, "attempt": attempt + 1},
                    )
                return result

        return wrapper

    return decorator
