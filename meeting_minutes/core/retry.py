"""Reusable retry policy shared by the provider and generation chains."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from meeting_minutes.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

WaitStrategy = Callable[[RetryCallState], float]


def wait_schedule(*delays: float) -> WaitStrategy:
    """Wait ``delays[n-1]`` seconds after attempt ``n`` fails.

    Attempts beyond the schedule reuse the last delay.
    """
    if not delays:
        raise ValueError("wait_schedule needs at least one delay")

    def _wait(retry_state: RetryCallState) -> float:
        index = min(retry_state.attempt_number, len(delays)) - 1
        return delays[index]

    return _wait


def _never(exc: BaseException) -> bool:
    return False


@dataclass
class RetryPolicy:
    """Max attempts, a backoff function and a retryable-error predicate.

    ``run`` calls the attempted coroutine function with the 1-based attempt
    number so a chain can vary what it does per attempt (e.g. switch model).
    The last exception is re-raised once attempts are exhausted or an error is
    not retryable.
    """

    max_attempts: int
    wait: WaitStrategy = field(default_factory=lambda: wait_exponential(multiplier=1, min=1, max=2))
    retry_on: Callable[[BaseException], bool] = _never
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    name: str = "retry"

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "retrying_after_error",
            policy=self.name,
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc) if exc else None,
            error_type=type(exc).__name__ if exc else None,
        )

    async def run(self, attempt: Callable[[int], Awaitable[T]]) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception(self.retry_on),
            sleep=self.sleep,
            before_sleep=self._before_sleep,
            reraise=True,
        )
        async for attempt_ctx in retrying:
            with attempt_ctx:
                result = await attempt(attempt_ctx.retry_state.attempt_number)
        return result
