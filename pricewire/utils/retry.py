"""
Retry policy for networked connectors: a bounded number of attempts with
capped exponential backoff and full jitter (sleep U(0, cap)).

    policy = RetryPolicy(retries=3, base=0.25)
    body = await aretry_call(fetch_once, client, policy=policy, retry_on=_Transient)

Only exceptions matching `retry_on` are retried. Anything else, including
`asyncio.CancelledError`, propagates on the spot.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar, Union

__all__ = ["RetryPolicy", "RetryError", "aretry_call"]

T = TypeVar("T")

RetryOn = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    retries   : attempts after the first one
    base      : backoff before the first retry (seconds, before jitter)
    max_delay : cap for any single backoff
    """

    retries: int = 3
    base: float = 0.25
    max_delay: float = 2.0

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.base < 0 or self.max_delay < 0:
            raise ValueError("backoff delays must be >= 0")

    @property
    def attempts(self) -> int:
        return self.retries + 1

    def delay(self, attempt: int) -> float:
        """Jittered sleep after failed attempt number `attempt` (1-based)."""
        cap = min(self.base * (2 ** max(attempt - 1, 0)), self.max_delay)
        return random.uniform(0.0, cap) if cap > 0 else 0.0


class RetryError(RuntimeError):
    """All attempts failed; `last_exception` is the final failure."""

    def __init__(self, last_exception: BaseException, attempts: int) -> None:
        super().__init__(f"gave up after {attempts} attempts: {last_exception!r}")
        self.last_exception = last_exception
        self.attempts = attempts


async def aretry_call(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy = RetryPolicy(),
    retry_on: RetryOn = Exception,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    **kwargs: Any,
) -> T:
    """
    Await ``fn(*args, **kwargs)`` up to ``policy.attempts`` times.

    `on_retry(attempt, exc, sleep_s)` runs before each backoff sleep.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fn(*args, **kwargs)
        except retry_on as exc:
            if attempt >= policy.attempts:
                raise RetryError(exc, attempts=attempt) from exc
            sleep_s = policy.delay(attempt)
            if on_retry is not None:
                on_retry(attempt, exc, sleep_s)
        await asyncio.sleep(sleep_s)
