from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {500, 502, 503, 504}


def _is_retryable(exc: httpx.RequestError | httpx.HTTPStatusError) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout))


def retry_with_backoff(
    retries: int = 3,
    delay: float = 1.0,
    max_delay: float = 8.0,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Retry async HTTP calls with exponential backoff on transient upstream failures.

    429 responses are not retried here; the caller converts them into a
    RateLimitError so the current run gives up on that source.
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            current_delay = delay
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except (httpx.RequestError, httpx.HTTPStatusError) as exc:
                    attempt += 1
                    if attempt > retries or not _is_retryable(exc):
                        raise
                    logger.warning(
                        "%s failed (%s), retry %d/%d in %.1fs",
                        func.__qualname__,
                        exc.__class__.__name__,
                        attempt,
                        retries,
                        current_delay,
                    )
                    await asyncio.sleep(current_delay)
                    current_delay = min(current_delay * 2, max_delay)

        return wrapper

    return decorator
