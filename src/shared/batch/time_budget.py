"""Wall-clock budget for time-boxed invocations."""

from __future__ import annotations

import time
from typing import Callable


class TimeBudgetGuard:
    """Answers whether a run has used up its allowed window.

    The guard is consulted before starting each unit of work, never in the
    middle of one, so a started item always runs to completion.
    """

    def __init__(self, max_run_time: float, *, clock: Callable[[], float] = time.monotonic):
        """Start the budget.

        Args:
            max_run_time: Allowed seconds for the run
            clock: Monotonic clock returning seconds (injectable for tests)
        """
        if max_run_time <= 0:
            raise ValueError("max_run_time must be positive")
        self.max_run_time = max_run_time
        self._clock = clock
        self._start = clock()
        self._expired = False

    def elapsed(self) -> float:
        return self._clock() - self._start

    def remaining(self) -> float:
        return max(self.max_run_time - self.elapsed(), 0.0)

    def is_expired(self) -> bool:
        # Latched so a clock adjustment cannot un-expire a run
        if not self._expired and self.elapsed() > self.max_run_time:
            self._expired = True
        return self._expired
