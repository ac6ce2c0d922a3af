"""Download progress counters."""
import logging
import time
from collections import Counter
from typing import Dict

logger = logging.getLogger(__name__)

# Outcomes a post can end a run with
OUTCOMES = ("written", "skipped", "failed", "not_found", "cancelled")


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.0f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


class Metrics:
    """Per-run post counters with throughput and time-to-finish estimates."""

    def __init__(self, total: int):
        self.total = total
        self.started = time.monotonic()
        self.counters: Counter = Counter()

    def increment(self, key: str, amount: int = 1) -> None:
        self.counters[key] += amount

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started

    def get_rate(self) -> float:
        """Posts handled per second so far."""
        elapsed = self.elapsed
        return self.counters["processed"] / elapsed if elapsed > 0 else 0.0

    def get_eta(self) -> float:
        """Seconds left at the current rate, 0 when nothing is known yet."""
        rate = self.get_rate()
        left = max(self.total - self.counters["processed"], 0)
        return left / rate if rate > 0 else 0.0

    def format_eta(self) -> str:
        return format_duration(self.get_eta())

    def report(self) -> None:
        processed = self.counters["processed"]
        percent = processed * 100 // self.total if self.total else 0
        outcomes = " ".join(f"{name}={self.counters[name]}" for name in OUTCOMES[:3])
        logger.info(
            f"Posts {processed}/{self.total} ({percent}%), "
            f"{self.get_rate():.2f}/s, eta {self.format_eta()}, {outcomes}"
        )

    def get_summary(self) -> Dict:
        summary = {"total": self.total, "processed": self.counters["processed"]}
        summary.update({name: self.counters[name] for name in OUTCOMES})
        summary["rate"] = self.get_rate()
        summary["elapsed_seconds"] = self.elapsed
        return summary
