"""Token-bucket rate limiter shared by every request of a run."""
import asyncio
import logging
import time
from typing import Optional

from substack_dl.jobs.run_control import RunControl

logger = logging.getLogger(__name__)


class RateLimiter:
    """Token bucket refilled at rate_per_second, holding at most burst tokens.

    Safe to share between tasks: waiters are serialized by an internal lock.
    A rate of 0 or less disables limiting.
    """

    def __init__(self, rate_per_second: float, burst: Optional[int] = None):
        self.rate_per_second = rate_per_second
        self.burst = burst if burst is not None else max(1, int(rate_per_second))
        self._tokens = float(self.burst)
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._last_refill = now
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate_per_second)

    async def acquire(self, control: Optional[RunControl] = None) -> None:
        """Wait until a token is available. Raises CancellationError if cancelled meanwhile."""
        if control:
            control.raise_if_cancelled()
        if self.rate_per_second <= 0:
            return

        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                wait_time = (1 - self._tokens) / self.rate_per_second
                if control:
                    await control.sleep(wait_time)
                else:
                    await asyncio.sleep(wait_time)
