"""
Retry with linear backoff for rate-limited deliveries.

WHAT: Re-attempt a delivery while the transport reports rate limiting
WHY: Chat platforms throttle rapid message edits with 429 responses
HOW: Up to 1 + max_retries attempts, delay grows with the attempt number and
     is capped; any other error stops immediately
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from .exceptions import DeliveryError, MaxRetriesExceededError
from .logger import get_logger

logger = get_logger(__name__)

RATE_LIMIT_MARKERS = ("429", "too many requests", "rate limit")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters; delays are in seconds."""
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0

    def delay(self, attempt: int) -> float:
        """Wait before attempt n (attempt 0 never waits)."""
        if attempt <= 0:
            return 0.0
        return min(self.base_delay * attempt * self.backoff_factor, self.max_delay)

    @classmethod
    def from_settings(cls, config) -> "RetryPolicy":
        return cls(
            max_retries=config.STREAM_MAX_RETRIES,
            base_delay=config.STREAM_RETRY_DELAY,
            max_delay=config.STREAM_MAX_RETRY_DELAY,
            backoff_factor=config.STREAM_RETRY_BACKOFF_FACTOR,
        )


def is_rate_limit_error(error: BaseException | None) -> bool:
    if error is None:
        return False
    text = str(error).lower()
    return any(marker in text for marker in RATE_LIMIT_MARKERS)


async def deliver_with_retry(
    deliver: Callable[[str], Awaitable[None]],
    text: str,
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """
    Deliver text, retrying only on rate-limit errors.

    Args:
        deliver: Coroutine function pushing text to the transport
        text: Snapshot to deliver
        policy: Backoff parameters
        sleep: Awaitable sleep (injectable for tests)

    Raises:
        DeliveryError: Non-rate-limit failure (no retries consumed)
        MaxRetriesExceededError: Still rate limited after the last retry
    """
    last_error: Exception | None = None

    for attempt in range(policy.max_retries + 1):
        if attempt > 0:
            delay = policy.delay(attempt)
            logger.debug(f"Retrying delivery (attempt {attempt}, delay {delay:.2f}s)")
            await sleep(delay)

        try:
            await deliver(text)
            return
        except Exception as e:
            if not is_rate_limit_error(e):
                logger.warning(f"Delivery failed (attempt {attempt}): {e}")
                raise DeliveryError(f"delivery failed: {e}", cause=e, attempts=attempt + 1) from e
            logger.warning(f"Rate limit hit, will retry (attempt {attempt}): {e}")
            last_error = e

    raise MaxRetriesExceededError(last_error, attempts=policy.max_retries + 1) from last_error
