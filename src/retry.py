"""
Retry helpers for optimistic-concurrency writes.

A write against a versioned store fails with ConflictError when somebody else
updated the object first. The caller re-reads and tries again, backing off
between attempts.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, TypeVar

from errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Backoff:
    """
    Exponential backoff policy.

    Attributes:
        steps: Maximum number of attempts
        duration: Initial delay in seconds
        factor: Multiplier applied to the delay after each attempt
        jitter: Random extra delay, as a fraction of the current delay
        cap: Upper bound for the delay in seconds (0 = no cap)
    """

    steps: int = 5
    duration: float = 0.01
    factor: float = 1.0
    jitter: float = 0.1
    cap: float = 0.0

    def delays(self) -> Iterator[float]:
        """Yield the sleep before each retry (steps - 1 values)."""
        duration = self.duration
        for _ in range(max(self.steps - 1, 0)):
            delay = duration
            if self.jitter > 0:
                delay += random.uniform(0, self.jitter * duration)
            yield delay

            if self.factor != 0:
                duration *= self.factor
                if self.cap > 0 and duration > self.cap:
                    duration = self.cap


# Suitable for writes that race with other controllers
DEFAULT_RETRY = Backoff(steps=5, duration=0.01, factor=1.0, jitter=0.1)

# Suitable for slower, more patient callers
DEFAULT_BACKOFF = Backoff(steps=4, duration=0.01, factor=5.0, jitter=0.1)


async def on_error(
    backoff: Backoff,
    retriable: Callable[[Exception], bool],
    fn: Callable[[], Awaitable[T]],
) -> T:
    """
    Run fn, retrying while it raises an error accepted by retriable.

    The last retriable error is re-raised once the backoff is exhausted.
    Non-retriable errors propagate immediately.
    """
    delays = backoff.delays()
    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as e:
            if not retriable(e):
                raise
            delay = next(delays, None)
            if delay is None:
                logger.warning(f"Giving up after {attempt} attempt(s): {e}")
                raise
            logger.debug(f"Attempt {attempt} failed, retrying in {delay:.3f}s: {e}")
            attempt += 1
            await asyncio.sleep(delay)


def is_conflict(err: Exception) -> bool:
    return isinstance(err, ConflictError)


async def retry_on_conflict(
    backoff: Backoff, fn: Callable[[], Awaitable[T]]
) -> T:
    """Run fn, retrying on ConflictError with the given backoff."""
    return await on_error(backoff, is_conflict, fn)
