"""
Bounded exponential-backoff retry for provider calls.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .cancellation import CancelToken
from .errors import JobCancelled

logger = logging.getLogger("dubstudio")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry ``max_retries`` times after the first attempt, delays base, base*factor, ..."""

    max_retries: int = 3
    base_delay: float = 1.0
    factor: float = 2.0

    def delay_for(self, retry_index: int) -> float:
        return self.base_delay * (self.factor**retry_index)


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    label: str,
    cancel: CancelToken | None = None,
) -> T:
    """
    Await ``func()`` until it succeeds or the retry budget is spent.

    ``func`` is a zero-argument factory so each attempt gets a fresh coroutine.
    After the last attempt the original exception propagates unchanged.
    Cancellation is never retried.
    """
    cancel = cancel or CancelToken()
    attempt = 0
    while True:
        cancel.raise_if_cancelled()
        try:
            return await cancel.guard(func())
        except JobCancelled:
            raise
        except Exception as e:
            if attempt >= policy.max_retries:
                logger.error(f"{label} failed after {attempt + 1} attempt(s): {e}")
                raise
            delay = policy.delay_for(attempt)
            attempt += 1
            logger.warning(
                f"{label} failed ({e}); retry {attempt}/{policy.max_retries} in {delay:.1f}s"
            )
            await cancel.sleep(delay)
