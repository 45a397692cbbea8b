"""Shared resumable batch processing infrastructure.

Provides generic utilities for interruptible batch pipelines:
- ProgressStore / ProgressRecord: Durable checkpoint with atomic writes
- run_with_retry: Bounded fixed-delay retry for a single unit of work
- TimeBudgetGuard: Wall-clock budget checked before each unit of work
- FailureTracker: Diagnostic record of items that exhausted their retries
- ProgressTracker: Rate/ETA progress logging
- CollaboratorError / ErrorKind: Typed failure contract for collaborators

Usage:
    from src.shared.batch import ProgressStore, TimeBudgetGuard, run_with_retry
    from src.shared.batch import CollaboratorError, ErrorKind, is_fatal
"""

from .errors import (
    BatchError,
    CheckpointError,
    CollaboratorError,
    DiscoveryError,
    ErrorKind,
    is_fatal,
    is_retryable,
)
from .failure_tracker import FailureTracker
from .progress import ProgressTracker
from .progress_store import ProgressRecord, ProgressStore
from .retry import run_with_retry
from .time_budget import TimeBudgetGuard

__all__ = [
    "BatchError",
    "CheckpointError",
    "CollaboratorError",
    "DiscoveryError",
    "ErrorKind",
    "is_fatal",
    "is_retryable",
    "FailureTracker",
    "ProgressTracker",
    "ProgressRecord",
    "ProgressStore",
    "run_with_retry",
    "TimeBudgetGuard",
]
