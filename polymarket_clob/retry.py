"""
Opt-in retry helper for callers.

The client itself never retries. Wrap an idempotent call when you want
backoff:

    book = await call_with_retry(lambda: client.order_book(token_id), config.retry)

Do NOT wrap ``post_order`` blindly: after a ``RequestTimeoutError`` the
order may already be live. Reconcile with ``orders()`` first, and if it is
not there, build a fresh order (new salt) instead of resending the old one.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .config import RetryPolicy
from .errors import ClobError, RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_delay(error: ClobError, attempt: int, policy: RetryPolicy) -> float:
    """Seconds to wait before the next attempt."""
    if isinstance(error, RateLimitedError) and error.retry_after is not None:
        return min(policy.max_delay, error.retry_after)
    return policy.delay_for(attempt)


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``fn()`` until it succeeds, fails for good, or attempts run out.

    Args:
        fn: Zero-argument coroutine factory (called once per attempt)
        policy: Attempts and backoff bounds
        sleep: Injected for tests

    Returns:
        Result of the first successful attempt

    Raises:
        ClobError: The last error, or the first non-retryable one
    """
    policy = policy or RetryPolicy()
    attempt = 1
    while True:
        try:
            return await fn()
        except ClobError as e:
            if not e.retryable or attempt >= policy.max_attempts:
                raise
            delay = retry_delay(e, attempt, policy)
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed ({type(e).__name__}: {e}), "
                f"retrying in {delay:.2f}s"
            )
            await sleep(delay)
            attempt += 1
