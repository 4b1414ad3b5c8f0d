"""Retry utilities for handling transient failures."""

import asyncio
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
        exponential_base: float = 2.0,
        retryable_exceptions: tuple = (Exception,),
    ) -> None:
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.retryable_exceptions = retryable_exceptions


def exponential_backoff(attempt: int, config: RetryConfig) -> float:
    """Calculate exponential backoff delay."""
    delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    return min(delay, config.max_delay)


def with_async_retry(
    config: RetryConfig | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator adding retry with exponential backoff to a coroutine function.

    The config may also be read from the bound instance: when ``config`` is
    None and the first positional argument has a ``retry_config`` attribute,
    that is used instead.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            active = config
            if active is None and args:
                active = getattr(args[0], "retry_config", None)
            if active is None:
                active = RetryConfig()

            last_exception: Exception | None = None

            for attempt in range(1, active.max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except active.retryable_exceptions as e:
                    last_exception = e
                    if attempt < active.max_attempts:
                        await asyncio.sleep(exponential_backoff(attempt, active))

            if last_exception:
                raise last_exception
            raise RuntimeError("Unexpected retry state")

        return wrapper

    return decorator
