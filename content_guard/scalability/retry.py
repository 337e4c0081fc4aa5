"""Bounded exponential-backoff retry for transient store failures."""

import asyncio
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.05,
    max_delay: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """
    Call func until it succeeds or max_attempts is reached; the last error is re-raised.
    Delay doubles each attempt: base_delay, 2*base_delay, ... capped at max_delay.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except retry_on as e:
            if attempt == max_attempts:
                raise
            if on_retry is not None:
                on_retry(attempt, e)
            delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
            if delay > 0:
                await asyncio.sleep(delay)
    raise AssertionError("unreachable")
