"""
rancher_ha/utils/async_retry.py

Decorator that re-runs a coroutine function a bounded number of times. Used by
the local command runner and by the readiness poller, where "not ready yet" is
just another retryable exception.
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
    noisy: bool = False,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable[
    [Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]
]:
    """Retry an async function on selected exceptions.

    Args:
        retries (int):
            Total number of attempts, the first one included. Defaults to 3.
        delay (float):
            Seconds to sleep between two attempts. No sleep follows the last one.
        noisy (bool):
            If True, log every failed attempt as a warning and the final one as an error.
        retry_on (Tuple[Type[BaseException], ...]):
            Exceptions that trigger another attempt. Anything else propagates at once.

    Returns:
        A decorator producing the retrying wrapper. The last exception is re-raised
        once the attempts are used up.
    """

    def decorator(
        func: Callable[P, Coroutine[Any, Any, R]]
    ) -> Callable[P, Coroutine[Any, Any, R]]:
        name = func.__qualname__

        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            for attempt in range(1, retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retry_on as exc:
                    last_attempt = attempt >= retries
                    if noisy:
                        logger.warning(
                            "%s: attempt %d/%d failed: %s", name, attempt, retries, exc
                        )
                    if last_attempt:
                        if noisy:
                            logger.error("%s: giving up after %d attempts", name, retries)
                        raise
                await asyncio.sleep(delay)
            raise ValueError(f"{name}: retries must be >= 1, got {retries}")

        return wrapper

    return decorator
