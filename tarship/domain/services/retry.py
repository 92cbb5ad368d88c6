"""
Retry Policy

Architectural Intent:
- Fixed attempt budget with a fixed pause between attempts
- One attempt is one whole unit of work; a retry never resumes half-way
- The sleep function is injectable so tests can observe spacing without waiting
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    delay: float = 0.3

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")
        if self.delay < 0:
            raise ValueError(f"delay must be >= 0, got {self.delay}")


class RetryExhausted(Exception):
    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    task: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    on_retry: Optional[Callable[[int, Exception], Union[None, Awaitable[None]]]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Awaits task(attempt) until it succeeds or the budget is spent.

    on_retry(attempt, exc) is called after every failed attempt, including
    the last one, and awaited when it returns an awaitable. Raises
    RetryExhausted chained to the last error.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, policy.attempts + 1):
        try:
            return await task(attempt)
        except Exception as exc:
            last_error = exc
            if on_retry:
                result = on_retry(attempt, exc)
                if inspect.isawaitable(result):
                    await result
            if attempt == policy.attempts:
                break
            logger.debug(
                "Attempt %d/%d failed, retrying in %.2fs: %s",
                attempt, policy.attempts, policy.delay, exc,
            )
            await sleep(policy.delay)
    raise RetryExhausted(policy.attempts, last_error) from last_error
