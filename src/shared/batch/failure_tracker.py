"""Failure tracking for batch runs."""

from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


class FailureTracker:
    """Records items that exhausted their retries during one run.

    The checkpoint already remembers *which* items are deferred; this keeps
    the error context (message, exception type, traceback) so poison items
    can be diagnosed from ``failures.json`` without digging through logs.

    Example:
        tracker = FailureTracker()

        try:
            render(item)
        except Exception as e:
            tracker.record_failure(item.id, e, attempts=4)

        tracker.save(Path("./data/failures.json"))
    """

    def __init__(self) -> None:
        self.failures: List[Dict[str, Any]] = []

    def record_failure(self, item_id: str, exc: BaseException, *, attempts: int, deferred: bool = False) -> None:
        """Record an item failure.

        Args:
            item_id: Identifier of the failed item
            exc: Final exception raised for the item
            attempts: Number of attempts made this run
            deferred: Whether the item was already deferred before this run
        """
        self.failures.append(
            {
                "item_id": str(item_id),
                "error": str(exc),
                "exception_type": type(exc).__name__,
                "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).strip(),
                "attempts": attempts,
                "previously_deferred": deferred,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    @property
    def failed_ids(self) -> List[str]:
        return [failure["item_id"] for failure in self.failures]

    def save(self, filepath: Path) -> None:
        """Atomically save failures to a JSON file.

        Nothing is written when the run had no failures. Write errors are
        logged rather than raised: this file is diagnostic only.
        """
        if not self.failures:
            logger.debug("No failures to save")
            return

        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            temp_path = filepath.with_suffix(".tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(self.failures, f, indent=2, ensure_ascii=False)
            temp_path.replace(filepath)
            logger.info("Saved %d failures to %s", len(self.failures), filepath)
        except OSError as e:
            logger.error("Failed to save failures: %s", e)

    def get_summary(self) -> Dict[str, int]:
        """Get failure counts.

        Returns:
            Dict with total failures and how many were already deferred
        """
        return {
            "failed": len(self.failures),
            "previously_deferred": sum(1 for failure in self.failures if failure["previously_deferred"]),
        }
