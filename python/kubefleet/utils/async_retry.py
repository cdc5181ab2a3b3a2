"""
kubefleet/utils/async_retry.py

Provides a decorator to retry an async function a bounded number of times.
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Tuple, Type
from typing_extensions import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def async_retry(
    retries: int = 3,
    delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable[
    [Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]
]:
    """Decorates an async function to retry upon failure.

    The decorated function is attempted up to `retries` times (at least once),
    sleeping `delay` seconds between attempts. Only exceptions matching
    `retry_on` are retried; anything else propagates immediately.

    Args:
        retries (int, optional):
            Maximum number of total attempts. Defaults to 3.
        delay (float, optional):
            Delay in seconds between attempts. Defaults to 1.0.
        retry_on (Tuple[Type[BaseException], ...], optional):
            Exception types worth another attempt. Defaults to (Exception,).

    Returns:
        A decorator returning a retrying version of the async function.
    """
    attempts = max(1, retries)

    def decorator(
        func: Callable[P, Coroutine[Any, Any, R]]
    ) -> Callable[P, Coroutine[Any, Any, R]]:
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            for attempt_number in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except retry_on as exc:
                    if attempt_number == attempts:
                        raise
                    logger.warning(
                        "Attempt %d/%d of %s failed: %s",
                        attempt_number,
                        attempts,
                        func.__qualname__,
                        exc,
                    )
                    await asyncio.sleep(delay)
            raise AssertionError("unreachable")

        return wrapper

    return decorator
