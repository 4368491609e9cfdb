"""Exponential-backoff retry helper for calls to remote APIs."""

import time
from typing import Callable, Tuple, Type, TypeVar

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="retry")

T = TypeVar("T")


def retry_with_backoff(
    fn: Callable[[], T],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call `fn` up to `max_retries` times, doubling the delay after each failure.

    Delays are `initial_delay * 2**attempt` seconds between attempts (1s, 2s,
    4s, ... by default). Exceptions outside `retry_on` propagate immediately;
    once attempts are exhausted the last error is re-raised.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    for attempt in range(max_retries):
        try:
            return fn()
        except retry_on as exc:
            if attempt == max_retries - 1:
                logger.error("Giving up after %d attempt(s): %s", max_retries, exc)
                raise
            delay = initial_delay * (2 ** attempt)
            logger.warning(
                "Attempt %d/%d failed (%s); retrying in %.2fs",
                attempt + 1, max_retries, exc, delay,
            )
            sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
