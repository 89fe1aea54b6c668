"""Fixed delay between Notion write calls."""
import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_DELAY_MS = 350


class RateLimiter:
    """Pause the sync for a fixed interval after each mutating call.

    This is a blanket throttle, not a token bucket: it never looks at the
    responses it follows. Calls are awaited one after another so the pause
    always lands between two consecutive writes.
    """

    def __init__(
        self,
        delay_ms: int = DEFAULT_DELAY_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        self.delay_ms = delay_ms
        self._sleep = sleep
        self.waits = 0

    async def wait(self):
        """Suspend the caller for the configured delay."""
        self.waits += 1
        if self.delay_ms == 0:
            return
        logger.debug(f"Rate limit pause: {self.delay_ms}ms")
        await self._sleep(self.delay_ms / 1000)
