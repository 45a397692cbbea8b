"""Batch scheduling and finalization for the article archive."""

from .batch_scheduler import BatchResult, BatchScheduler, SchedulerState
from .finalizer import Finalizer, FinalizeResult

__all__ = [
    "BatchResult",
    "BatchScheduler",
    "SchedulerState",
    "Finalizer",
    "FinalizeResult",
]
