"""Progress logging for batch processing pipelines."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Tracks per-run counters and logs rate/ETA lines.

    This is observability only; the durable position lives in the
    ``ProgressStore`` checkpoint.

    Example:
        tracker = ProgressTracker(total_items=25, already_processed=10, stage="render")

        for item in batch:
            ok = process(item)
            tracker.increment(success=ok)
            if tracker.should_log():
                tracker.log_progress()

        tracker.log_summary()
    """

    def __init__(
        self,
        total_items: int,
        stage: str,
        *,
        already_processed: int = 0,
        log_interval: int = 10,
        log_time_interval: int = 30,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize progress tracker.

        Args:
            total_items: Total number of items known to the checkpoint
            stage: Current stage name
            already_processed: Items completed by earlier invocations
            log_interval: Number of items between logs
            log_time_interval: Seconds between time-based logs
            clock: Monotonic clock (injectable for tests)
        """
        self.total_items = total_items
        self.stage = stage
        self.already_processed = already_processed
        self.log_interval = log_interval
        self.log_time_interval = log_time_interval
        self._clock = clock

        self.start_time = clock()
        self.processed_count = 0
        self.success_count = 0
        self.error_count = 0
        self.skipped_count = 0
        self.last_log_time = self.start_time
        self.last_log_count = 0

    def increment(self, success: bool = True, *, skipped: bool = False) -> None:
        """Increment counters.

        Args:
            success: Whether processing succeeded
            skipped: Whether the item was short-circuited (already complete)
        """
        self.processed_count += 1
        if success:
            self.success_count += 1
            if skipped:
                self.skipped_count += 1
        else:
            self.error_count += 1

    def should_log(self) -> bool:
        count_trigger = self.processed_count - self.last_log_count >= self.log_interval
        time_trigger = self._clock() - self.last_log_time >= self.log_time_interval
        return count_trigger or time_trigger

    def _rate_per_minute(self) -> float:
        elapsed_minutes = (self._clock() - self.start_time) / 60
        return self.processed_count / elapsed_minutes if elapsed_minutes > 0 else 0.0

    def log_progress(self, extra_stats: Optional[Dict[str, Any]] = None) -> None:
        """Log current progress with rate and ETA."""
        done = self.already_processed + self.success_count
        rate = self._rate_per_minute()
        remaining = max(self.total_items - done, 0)
        eta_minutes = remaining / rate if rate > 0 else 0
        percent = done / self.total_items * 100 if self.total_items > 0 else 0

        parts = [
            f"Progress: {done:,}/{self.total_items:,} ({percent:.1f}%)",
            f"Rate: {rate:.1f} items/min",
            f"Errors: {self.error_count}",
            f"ETA: {eta_minutes:.1f}min",
            f"Stage: {self.stage}",
        ]
        if extra_stats:
            for key, value in extra_stats.items():
                parts.append(f"{key}: {value:.1f}" if isinstance(value, float) else f"{key}: {value}")

        logger.info(" | ".join(parts))
        self.last_log_time = self._clock()
        self.last_log_count = self.processed_count

    def log_summary(self) -> None:
        """Log final summary for this invocation."""
        elapsed = self._clock() - self.start_time
        summary_parts = [
            f"Attempted: {self.processed_count:,}",
            f"Successful: {self.success_count:,}",
            f"Already complete: {self.skipped_count:,}",
            f"Errors: {self.error_count:,}",
            f"Time: {elapsed:.1f}s",
            f"Stage: {self.stage}",
        ]
        logger.info("Batch summary:\n  " + "\n  ".join(summary_parts))

    def get_stats(self) -> Dict[str, Any]:
        return {
            "attempted": self.processed_count,
            "successful": self.success_count,
            "skipped": self.skipped_count,
            "errors": self.error_count,
            "total": self.total_items,
            "elapsed_seconds": self._clock() - self.start_time,
            "stage": self.stage,
        }
