"""
VoiceBrief Backend: Backoff Retrier
===================================

What:  Wraps a single external call with bounded exponential-backoff retry.
How:   A tenacity `AsyncRetrying` loop whose retry predicate only matches
       ProviderError instances tagged `ProviderErrorKind.RATE_LIMITED`.
Who:   VoiceService wraps every provider adapter call with it.
When:  Around the provider call only. Structural validation of the response
       happens after `retry()` returns and is never retried.

Retry Policy:
    attempt 0 fails (rate limited) → sleep 1s → attempt 1
    attempt 1 fails (rate limited) → sleep 2s → attempt 2
    attempt 2 fails (rate limited) → last error propagates

    delay(n) = base_delay * 2^n, no jitter.

    Any other failure propagates unchanged on the first attempt. The retrier
    holds no state between calls, so concurrent call sites need no
    coordination. Sleeping is an `asyncio.sleep` yield, so other requests
    keep being served during a backoff.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from voicebrief.config import settings
from voicebrief.exceptions import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")
SleepFunc = Callable[[float], Awaitable[None]]


def is_rate_limited(exc: BaseException) -> bool:
    """Retry predicate: only provider backpressure is transient."""
    return isinstance(exc, ProviderError) and exc.is_transient


class BackoffRetrier:
    """
    Bounded exponential-backoff retry for rate-limited provider calls.

    Args:
        max_attempts: Default attempt ceiling (settings.retry_max_attempts)
        base_delay:   Delay unit in seconds (settings.retry_base_delay)
        sleep:        Awaitable sleep function. Tests pass a recorder here
                      instead of patching the clock.
    """

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.max_attempts = max_attempts or settings.retry_max_attempts
        self.base_delay = settings.retry_base_delay if base_delay is None else base_delay
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows 0-indexed `attempt`."""
        return self.base_delay * (2 ** attempt)

    async def retry(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: Optional[int] = None,
    ) -> T:
        """
        Run `operation` until it succeeds or the policy gives up.

        Args:
            operation:    Zero-argument callable returning an awaitable
            max_attempts: Per-call override of the attempt ceiling

        Returns:
            Whatever `operation` returns on its first successful attempt.

        Raises:
            The last RateLimitedError once `max_attempts` are spent, or any
            other exception from `operation` unchanged on first occurrence.
        """
        attempts = max_attempts or self.max_attempts
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_rate_limited),
            stop=stop_after_attempt(attempts),
            # attempt_number 1 → base_delay, 2 → 2 * base_delay, ...
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2, min=0),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        # Awaited inside the attempt so plain callables returning a coroutine
        # (lambda: provider.call(...)) are retried like async functions
        async for attempt in retrying:
            with attempt:
                return await operation()


# ── Singleton Instance ────────────────────────────────────────────────────
backoff_retrier = BackoffRetrier()
