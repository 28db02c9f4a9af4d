"""
Streaming delivery pipeline.

WHAT: Turn a provider's delta stream into a paced series of message edits
WHY: Chat platforms rate-limit edits; users still want text to appear live
HOW: Accumulate deltas, flush a snapshot when pacing allows, retry
     rate-limited deliveries with backoff, force a last flush on finalize
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from ..core.config import Settings
from ..telegram.sender import MessageSender
from ..utils.backoff import RetryPolicy, deliver_with_retry
from ..utils.exceptions import DeliveryError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class StreamHandler:
    """
    DeltaSink that mirrors the growing response into one chat message.

    A flush happens when the buffer is non-empty and either nothing has been
    attempted yet, or the buffer changed and min_interval has passed since
    the previous attempt. Failed flushes are logged; accumulation continues.
    """

    def __init__(
        self,
        sender: MessageSender,
        min_interval: float = 0.0,
        retry_policy: Optional[RetryPolicy] = None,
        parse_mode: str = "",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            sender: Per-turn message sender (send first, then edit)
            min_interval: Seconds between flush attempts
            retry_policy: Backoff for rate-limited deliveries
            parse_mode: Telegram parse mode; empty sends plain text
            clock: Monotonic time source
            sleep: Awaitable sleep used between retries
        """
        self.sender = sender
        self.min_interval = min_interval
        self.retry_policy = retry_policy or RetryPolicy()
        self.parse_mode = parse_mode
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

        self._text = ""
        self.last_sent_text = ""
        self.last_update_time: Optional[float] = None
        self.flush_count = 0

    @classmethod
    def from_settings(cls, sender: MessageSender, config: Settings, **kwargs) -> "StreamHandler":
        return cls(
            sender,
            min_interval=config.TELEGRAM_MIN_STREAM_INTERVAL / 1000.0,
            retry_policy=RetryPolicy.from_settings(config),
            parse_mode=config.DEFAULT_PARSE_MODE,
            **kwargs,
        )

    @property
    def final_text(self) -> str:
        return self._text

    def _should_flush(self) -> bool:
        if not self._text:
            return False
        if self.last_update_time is None:
            return True
        if self._text == self.last_sent_text:
            return False
        return self._clock() - self.last_update_time >= self.min_interval

    async def _flush(self) -> None:
        snapshot = self._text
        self.flush_count += 1
        self.last_update_time = self._clock()
        await deliver_with_retry(self._deliver, snapshot, self.retry_policy, self._sleep)
        self.last_sent_text = snapshot

    async def _deliver(self, text: str) -> None:
        await self.sender.send_rich_text(text, self.parse_mode)

    async def on_delta(self, text: str) -> None:
        """Append a delta and flush if pacing allows. Never raises on delivery failure."""
        async with self._lock:
            self._text += text
            if not self._should_flush():
                return
            try:
                await self._flush()
            except DeliveryError as e:
                logger.warning(f"Failed to send stream update: {e.message}")

    async def finalize(self) -> None:
        """
        Deliver whatever the last flush missed, ignoring pacing.

        Raises:
            DeliveryError: The final delivery failed
        """
        async with self._lock:
            if self._text and self._text != self.last_sent_text:
                await self._flush()
            logger.debug(f"Stream finalized ({len(self._text)} chars, {self.flush_count} flushes)")

    def reset(self) -> None:
        """Clear all state; only valid between turns."""
        self._text = ""
        self.last_sent_text = ""
        self.last_update_time = None
        self.flush_count = 0
