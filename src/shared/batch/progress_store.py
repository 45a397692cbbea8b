"""Durable progress checkpoint with atomic writes."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import CheckpointError

logger = logging.getLogger(__name__)


@dataclass
class ProgressRecord:
    """How far a batch pipeline has advanced through its ordered work list.

    ``remaining_count`` is always derived from the two counters and is only
    written to disk for humans reading the file.

    ``deferred_ids`` holds items behind the cursor that are not processed:
    items that exhausted their retries in an earlier invocation, and items
    that appeared in front of the cursor after it had moved on. The list is
    the retry queue; an item that fails again goes to the back.
    """

    last_processed_id: Optional[str] = None
    total_count: int = 0
    processed_count: int = 0
    deferred_ids: List[str] = field(default_factory=list)
    last_update: Optional[str] = None

    @property
    def remaining_count(self) -> int:
        return max(self.total_count - self.processed_count, 0)

    @property
    def cursor(self) -> int:
        """Index of the next item that has never been attempted."""
        return self.processed_count + len(self.deferred_ids)

    def mark_processed(self, item_id: str, *, frontier: bool = True) -> None:
        """Count ``item_id`` as completed.

        Args:
            item_id: Identifier of the completed item
            frontier: False when the item was a deferred retry; those leave
                ``last_processed_id`` on the prefix boundary.
        """
        if item_id in self.deferred_ids:
            self.deferred_ids.remove(item_id)
        self.processed_count += 1
        if frontier:
            self.last_processed_id = item_id

    def defer(self, item_id: str) -> None:
        """Queue ``item_id`` for a later retry without counting it as processed.

        A new id moves the cursor past it; an id already queued moves to the back.
        """
        if item_id in self.deferred_ids:
            self.deferred_ids.remove(item_id)
        self.deferred_ids.append(item_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastProcessedId": self.last_processed_id,
            "totalCount": self.total_count,
            "processedCount": self.processed_count,
            "remainingCount": self.remaining_count,
            "deferredIds": list(self.deferred_ids),
            "lastUpdate": self.last_update,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressRecord":
        """Build a record from its JSON form, validating the counters.

        Raises:
            CheckpointError: If the payload violates the record invariants
        """
        if not isinstance(data, dict):
            raise CheckpointError("Checkpoint payload must be a JSON object")

        # Older checkpoint files used "totalArticles"
        total = data.get("totalCount", data.get("totalArticles", 0)) or 0
        processed = data.get("processedCount", 0) or 0
        deferred = data.get("deferredIds", []) or []

        if not isinstance(total, int) or not isinstance(processed, int):
            raise CheckpointError("Checkpoint counters must be integers")
        if total < 0 or processed < 0:
            raise CheckpointError(
                f"Checkpoint counters must not be negative (total={total}, processed={processed})"
            )
        if processed > total:
            raise CheckpointError(
                f"Checkpoint reports more processed items ({processed}) than total ({total})"
            )
        if not isinstance(deferred, list):
            raise CheckpointError("Checkpoint deferredIds must be a list")
        if processed + len(deferred) > total:
            raise CheckpointError(
                f"Checkpoint cursor ({processed + len(deferred)}) is beyond total ({total})"
            )

        last_id = data.get("lastProcessedId")
        return cls(
            last_processed_id=str(last_id) if last_id is not None else None,
            total_count=total,
            processed_count=processed,
            deferred_ids=[str(item_id) for item_id in deferred],
            last_update=data.get("lastUpdate"),
        )


class ProgressStore:
    """Loads and saves a single ``ProgressRecord`` JSON file.

    Every save is a write-to-temp followed by an atomic rename, so a crash
    leaves either the previous or the new record on disk, never a mix.
    The store does no locking; only one runner may use a file at a time.

    Example:
        store = ProgressStore("./data/progress.json")
        progress = store.load()

        progress.mark_processed(item.id)
        store.save(progress)
    """

    def __init__(self, filepath: str | Path):
        """Initialize progress store.

        Args:
            filepath: Path to checkpoint JSON file
        """
        self.filepath = Path(filepath)

    def load(self) -> ProgressRecord:
        """Return the current checkpoint, creating a zeroed one if absent.

        Returns:
            Current progress record

        Raises:
            CheckpointError: If the file cannot be read or is corrupt
        """
        if not self.filepath.exists():
            record = ProgressRecord()
            self.save(record)
            logger.info("Initialized new checkpoint at %s", self.filepath)
            return record

        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise CheckpointError(f"Checkpoint {self.filepath} is not valid JSON: {exc}") from exc
        except OSError as exc:
            raise CheckpointError(f"Failed to read checkpoint {self.filepath}: {exc}") from exc

        record = ProgressRecord.from_dict(data)
        logger.debug(
            "Loaded checkpoint from %s (%d/%d processed, %d deferred)",
            self.filepath,
            record.processed_count,
            record.total_count,
            len(record.deferred_ids),
        )
        return record

    def save(self, record: ProgressRecord) -> None:
        """Atomically overwrite the checkpoint with ``record``.

        Stamps ``record.last_update`` before writing.

        Raises:
            CheckpointError: If the checkpoint cannot be written
        """
        record.last_update = datetime.now(timezone.utc).isoformat()
        temp_path = self.filepath.with_suffix(".tmp")
        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2)
            temp_path.replace(self.filepath)
        except OSError as exc:
            raise CheckpointError(f"Failed to write checkpoint {self.filepath}: {exc}") from exc
        logger.debug("Checkpoint flushed to %s", self.filepath)
