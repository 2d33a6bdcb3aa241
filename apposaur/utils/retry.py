"""
Async retry utility for transient failures.

Retry policy:
- Bounded loop: `retries` extra attempts after the first (default 2 → 3 attempts)
- Delay per attempt: min(base_delay * backoff ** attempt, max_delay)
  (backoff=1.0 gives a fixed delay)
- Only exceptions listed in `retry_on` are retried; anything else is raised
  immediately
- Original exception is preserved on final failure
- No logging inside utility; callers log through `on_retry`
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

import httpx


DEFAULT_RETRIES = 2
DEFAULT_BASE_DELAY = 0.5
DEFAULT_BACKOFF = 1.0
DEFAULT_MAX_DELAY = 10.0

# Transient exceptions that should be retried
TRANSIENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    asyncio.TimeoutError,
    httpx.HTTPError,  # transport errors and HTTPStatusError from raise_for_status()
    ConnectionError,
    OSError,
)


def compute_delay(
    attempt: int,
    base_delay: float = DEFAULT_BASE_DELAY,
    backoff: float = DEFAULT_BACKOFF,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> float:
    """Delay in seconds before retry number `attempt + 1` (attempt is 0-based)."""
    return max(0.0, min(base_delay * (backoff ** attempt), max_delay))


async def retry_async(
    fn: Callable[[], Awaitable[Any]],
    *,
    retries: int = DEFAULT_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    backoff: float = DEFAULT_BACKOFF,
    max_delay: float = DEFAULT_MAX_DELAY,
    retry_on: Tuple[Type[Exception], ...] = TRANSIENT_EXCEPTIONS,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
) -> Any:
    """
    Retry an async function with a per-attempt delay.

    Args:
        fn: Callable returning an awaitable; called once per attempt
        retries: Number of retry attempts (default: 2, total attempts: 3)
        base_delay: Delay in seconds before the first retry
        backoff: Multiplier applied per attempt (1.0 = fixed delay)
        max_delay: Upper bound for a single delay
        retry_on: Exception types to retry on
        on_retry: Called as on_retry(attempt_number, exception, delay) before
            each sleep; attempt_number is 1-based

    Returns:
        Result of the function call

    Raises:
        The last exception once retries are exhausted.
        Non-retryable exceptions immediately.
    """
    if retries < 0:
        raise ValueError("retries must be >= 0")

    for attempt in range(retries + 1):
        try:
            return await fn()
        except retry_on as e:
            if attempt >= retries:
                raise
            delay = compute_delay(attempt, base_delay, backoff, max_delay)
            if on_retry is not None:
                on_retry(attempt + 1, e, delay)
            await asyncio.sleep(delay)

    # Unreachable: the last attempt either returns or raises
    raise RuntimeError("retry_async: unexpected end of retry loop")
