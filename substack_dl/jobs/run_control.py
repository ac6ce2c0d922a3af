"""Run control: cancellation and stop conditions."""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from substack_dl.fetch.errors import CancellationError

logger = logging.getLogger(__name__)


@dataclass
class RunControl:
    """Cancellation token shared by discovery, the worker pool and every fetch.

    Also tracks the stop conditions of a run; reaching one cancels the run.
    """

    stop_after_minutes: Optional[float] = None
    max_errors: Optional[int] = None
    max_consecutive_errors: Optional[int] = None

    started: float = field(default_factory=time.monotonic)
    error_count: int = 0
    consecutive_errors: int = 0
    cancel_reason: Optional[str] = None
    _event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the run. Only the first reason is kept."""
        if not self._event.is_set():
            self.cancel_reason = reason
            logger.warning(f"Run cancelled: {reason}")
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError(f"operation cancelled: {self.cancel_reason}")

    async def wait_cancelled(self) -> None:
        await self._event.wait()

    async def sleep(self, seconds: float) -> None:
        """Sleep, waking early with CancellationError if the run is cancelled."""
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    @property
    def elapsed_minutes(self) -> float:
        return (time.monotonic() - self.started) / 60

    def stop_reason(self) -> Optional[str]:
        """Name of the first limit the run has hit, or None."""
        if self.cancelled:
            return self.cancel_reason
        limits = (
            ("stop_after_minutes", self.stop_after_minutes, self.elapsed_minutes),
            ("max_errors", self.max_errors, self.error_count),
            ("max_consecutive_errors", self.max_consecutive_errors, self.consecutive_errors),
        )
        for name, limit, value in limits:
            if limit and value >= limit:
                return f"{name}={limit} reached"
        return None

    def check(self) -> bool:
        """Cancel the run once a limit is hit. Returns True when the run is stopping."""
        reason = self.stop_reason()
        if reason is not None:
            self.cancel(reason)
        return reason is not None

    def record_error(self) -> None:
        self.error_count += 1
        self.consecutive_errors += 1

    def record_success(self) -> None:
        self.consecutive_errors = 0

    def get_summary(self) -> dict:
        return {
            "elapsed_minutes": round(self.elapsed_minutes, 2),
            "errors": self.error_count,
            "consecutive_errors": self.consecutive_errors,
            "cancelled": self.cancelled,
            "cancel_reason": self.cancel_reason,
        }
