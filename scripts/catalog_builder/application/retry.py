from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from catalog_builder.domain.exceptions import RateLimitError, RetryExhaustedError, TransientProviderError

log = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many times to re-run an action and how long to wait in between.

    Exponential schedule: base_delay * 2**attempt, capped at max_delay,
    then spread by +/- jitter so parallel runs don't retry in lockstep.
    """
    max_retries: int   = 3
    base_delay:  float = 2.0
    max_delay:   float = 60.0
    jitter:      float = 0.2

    def backoff(self, attempt: int, rng: random.Random | None = None) -> float:
        delay = min(self.base_delay * (2 ** attempt), self.max_delay)
        spread = delay * self.jitter * ((rng or random).random() - 0.5) * 2
        return max(0.0, min(delay + spread, self.max_delay))


# Rate limits and transient HTTP failures share one policy: retry the SAME request.
PROVIDER_RETRY_POLICY = RetryPolicy()
RETRYABLE_PROVIDER_ERRORS: tuple[type[BaseException], ...] = (RateLimitError, TransientProviderError)


async def retry_async(
    action: Callable[[], Awaitable[T]],
    policy: RetryPolicy = PROVIDER_RETRY_POLICY,
    *,
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_PROVIDER_ERRORS,
    sleep: Sleep = asyncio.sleep,
    rng: random.Random | None = None,
    description: str = "action",
) -> T:
    """
    Await `action()` until it succeeds, at most `policy.max_retries + 1` times.

    Only exceptions in `retry_on` are retried; anything else propagates
    immediately. When the ceiling is reached, RetryExhaustedError is raised
    chained from the last error.

    A RateLimitError carrying `retry_after` waits at least that long
    (still capped at policy.max_delay).
    """
    attempts = policy.max_retries + 1
    for attempt in range(attempts):
        try:
            return await action()
        except retry_on as exc:
            if attempt + 1 >= attempts:
                raise RetryExhaustedError(description, attempts) from exc

            wait = policy.backoff(attempt, rng)
            retry_after = getattr(exc, "retry_after", None)
            if retry_after:
                wait = min(max(wait, retry_after), policy.max_delay)

            log.warning(
                "%s failed attempt %d/%d: %s - retrying in %.1fs",
                description, attempt + 1, attempts, exc, wait,
            )
            await sleep(wait)

    # range(attempts) always returns or raises above
    raise RetryExhaustedError(description, attempts)
