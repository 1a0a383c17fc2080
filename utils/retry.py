"""Retry helpers with exponential backoff for provider calls."""
import asyncio
import logging
import random
import time
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

import aiohttp

from utils.exceptions import APIError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryConfig:
    """Configuration for retry logic."""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        retryable_exceptions: Optional[Tuple[type, ...]] = None,
        jitter: bool = True
    ):
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.retryable_exceptions = retryable_exceptions or (
            APIError,
            aiohttp.ClientError,
            asyncio.TimeoutError,
            ConnectionError,
            TimeoutError
        )
        self.jitter = jitter

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before the attempt after ``attempt``."""
        delay = min(
            self.initial_delay * (self.exponential_base ** (attempt - 1)),
            self.max_delay
        )
        if self.jitter:
            delay = delay * (0.5 + random.random() * 0.5)
        return delay


def retry_with_backoff(
    config: Optional[RetryConfig] = None
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator retrying a blocking call with exponential backoff.

    Example:
        @retry_with_backoff(RetryConfig(max_attempts=2))
        def download():
            ...
    """
    config = config or RetryConfig()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    if attempt == config.max_attempts:
                        logger.error(
                            f"Max retry attempts ({config.max_attempts}) reached for {func.__name__}"
                        )
                        raise
                    delay = config.delay_for(attempt)
                    logger.warning(
                        f"Retrying {func.__name__} (attempt {attempt}/{config.max_attempts}) "
                        f"after {delay:.2f}s due to {type(e).__name__}"
                    )
                    time.sleep(delay)
            raise RuntimeError("Unexpected retry loop exit")

        return wrapper
    return decorator


def async_retry_with_backoff(
    config: Optional[RetryConfig] = None
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Coroutine version of ``retry_with_backoff``; waits with ``asyncio.sleep``."""
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, config.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    if attempt == config.max_attempts:
                        logger.error(
                            f"Max retry attempts ({config.max_attempts}) reached for {func.__name__}"
                        )
                        raise
                    delay = config.delay_for(attempt)
                    logger.warning(
                        f"Retrying {func.__name__} (attempt {attempt}/{config.max_attempts}) "
                        f"after {delay:.2f}s due to {type(e).__name__}"
                    )
                    await asyncio.sleep(delay)
            raise RuntimeError("Unexpected retry loop exit")

        return wrapper
    return decorator
