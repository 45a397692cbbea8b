"""
Resumable, time-boxed batch rendering of archived articles.

Each call to ``BatchScheduler.run()`` is one invocation: it loads the
checkpoint, works through the next slice of the ordered work list, saves the
checkpoint after every item, and stops early when the time budget runs out.
Invocations are repeated externally (cron, queue, manual re-run) until the
result reports that no work remains.

Ordering and positions:
    The work list is stable (oldest article first) and the checkpoint's
    ``cursor`` is the index of the next never-attempted item. Items that
    exhaust their retries are deferred: the cursor moves past them and they
    stay out of ``processed_count``. Each invocation works the frontier
    slice first, then retries deferred items from the front of the queue
    with whatever batch allowance and time remain, so a poison item can
    never starve the items after it.

    When the list grows, older articles may have been inserted before the
    cursor (a backfilled feed page). Those are located by completion marker
    and deferred, which keeps the cursor pointing at the same next item.

Completion markers:
    The checkpoint is authoritative. On load, items at the cursor (or deferred
    items) that already have a completion marker are counted as processed, which
    closes the gap left by a crash between writing a page and saving the
    checkpoint.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from src.shared.batch import (
    CheckpointError,
    DiscoveryError,
    FailureTracker,
    ProgressRecord,
    ProgressStore,
    ProgressTracker,
    TimeBudgetGuard,
    is_fatal,
    run_with_retry,
)

from ..config import ArchiveConfig
from ..contracts import ArticleItem
from ..render import RenderResult
from .finalizer import Finalizer, FinalizeResult

logger = logging.getLogger(__name__)


class WorkSource(Protocol):
    def list_items(self) -> List[ArticleItem]:
        ...


class ItemRenderer(Protocol):
    def render_item(self, item: ArticleItem, *, force: bool = False) -> RenderResult:
        ...

    def is_complete(self, item: ArticleItem) -> bool:
        ...


class SchedulerState(str, Enum):
    INIT = "init"
    DISCOVERING_TOTAL = "discovering_total"
    SLICING = "slicing"
    PROCESSING_ITEM = "processing_item"
    CHECKPOINTING = "checkpointing"
    SUSPENDED_ON_TIMEOUT = "suspended_on_timeout"
    BATCH_COMPLETE = "batch_complete"
    FINALIZING = "finalizing"
    DONE = "done"


@dataclass
class BatchResult:
    """Outcome of one invocation."""

    state: SchedulerState
    progress: ProgressRecord
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    reconciled: int = 0
    timed_out: bool = False
    finalized: bool = False
    more_work_remains: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "processed": self.processed,
            "failed": self.failed,
            "skipped": self.skipped,
            "reconciled": self.reconciled,
            "timed_out": self.timed_out,
            "finalized": self.finalized,
            "more_work_remains": self.more_work_remains,
            "progress": self.progress.to_dict(),
        }


class BatchScheduler:
    """Drives archived articles through the renderer one bounded batch at a time.

    Single runner only: two schedulers sharing a checkpoint file is
    undefined behavior and must be prevented by whatever triggers runs.
    """

    STAGE = "render"

    def __init__(
        self,
        config: ArchiveConfig,
        progress_store: ProgressStore,
        work_source: WorkSource,
        renderer: ItemRenderer,
        finalizer: Finalizer,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.store = progress_store
        self.work_source = work_source
        self.renderer = renderer
        self.finalizer = finalizer
        self._clock = clock
        self._sleep = sleep
        self.state = SchedulerState.INIT
        self.last_finalize: Optional[FinalizeResult] = None

    def _transition(self, state: SchedulerState) -> None:
        if state is not self.state:
            logger.debug("Scheduler state %s -> %s", self.state.value, state.value)
        self.state = state

    def _ensure_directories(self) -> None:
        self.config.data_dir.mkdir(parents=True, exist_ok=True)
        (self.config.output_dir / "articles").mkdir(parents=True, exist_ok=True)

    def _list_items(self) -> List[ArticleItem]:
        try:
            return self.work_source.list_items()
        except DiscoveryError:
            raise
        except Exception as exc:
            raise DiscoveryError(f"Failed to list work items: {exc}") from exc

    def _discover(self, progress: ProgressRecord) -> List[ArticleItem]:
        """Read the work list and align the checkpoint's total with it."""
        items = self._list_items()
        changed = False

        if progress.total_count == 0 and items:
            logger.info("Discovered %d items to process", len(items))
            progress.total_count = len(items)
            changed = True
        else:
            present = {item.id for item in items}
            for item_id in [i for i in progress.deferred_ids if i not in present]:
                # Removing a poison item shifts every later position down by one
                logger.warning("Deferred item %s no longer in work list; dropping it", item_id)
                progress.deferred_ids.remove(item_id)
                progress.total_count -= 1
                changed = True

            if len(items) > progress.total_count:
                logger.info(
                    "Work list grew from %d to %d items", progress.total_count, len(items)
                )
                self._realign(progress, items)
                progress.total_count = len(items)
                changed = True
            elif len(items) < progress.total_count:
                raise CheckpointError(
                    f"Work list has {len(items)} items but checkpoint expects {progress.total_count}"
                )

        if changed:
            self.store.save(progress)
        return items

    def _realign(self, progress: ProgressRecord, items: List[ArticleItem]) -> None:
        """Queue items that were inserted behind the cursor.

        A backfilled page can add articles older than ones already processed,
        which shifts every later position. The new cursor sits right after the
        first ``cursor`` items that are either rendered or deferred; anything
        unattempted before it is deferred so the next slice still starts at a
        never-attempted item.
        """
        deferred = set(progress.deferred_ids)
        target = progress.cursor
        attempted = 0
        inserted: List[str] = []
        for item in items:
            if attempted == target:
                break
            if item.id in deferred or self.renderer.is_complete(item):
                attempted += 1
            else:
                inserted.append(item.id)

        if attempted < target:
            # Checkpoint claims items whose markers are gone; positions cannot be
            # recovered from markers, so keep treating the growth as appended.
            logger.warning(
                "Cannot locate %d checkpointed items by marker; assuming new items were appended",
                target - attempted,
            )
            return

        for item_id in inserted:
            logger.info("Item %s appeared behind the cursor; queueing it", item_id)
            progress.defer(item_id)

    def _reconcile(self, progress: ProgressRecord, items: List[ArticleItem]) -> int:
        """Count items whose completion marker is ahead of the checkpoint."""
        advanced = 0
        deferred = set(progress.deferred_ids)
        for item in items:
            if item.id in deferred and self.renderer.is_complete(item):
                progress.mark_processed(item.id, frontier=False)
                advanced += 1

        while progress.cursor < progress.total_count:
            item = items[progress.cursor]
            if not self.renderer.is_complete(item):
                break
            progress.mark_processed(item.id)
            advanced += 1

        if advanced:
            logger.info("Reconciled %d already-rendered items into the checkpoint", advanced)
            self.store.save(progress)
        return advanced

    def run(self) -> BatchResult:
        """Process the next batch.

        Returns:
            BatchResult; ``more_work_remains`` tells the caller whether to
            invoke again.

        Raises:
            CheckpointError: If the checkpoint cannot be read or written
            DiscoveryError: If the work list cannot be read
            CollaboratorError: For fatal (authentication) collaborator errors
        """
        self._transition(SchedulerState.INIT)
        guard = TimeBudgetGuard(self.config.max_run_time, clock=self._clock)
        self._ensure_directories()
        progress = self.store.load()

        self._transition(SchedulerState.DISCOVERING_TOTAL)
        items = self._discover(progress)
        result = BatchResult(state=self.state, progress=progress)
        result.reconciled = self._reconcile(progress, items)

        self._transition(SchedulerState.SLICING)
        start = progress.cursor
        end = min(start + self.config.batch_size, progress.total_count)
        frontier = items[start:end]
        # Deferred retries come after the frontier and share what is left of
        # the batch, but at least one is attempted per run
        by_id = {item.id: item for item in items}
        retry_limit = max(self.config.batch_size - len(frontier), 1)
        retry_items = [by_id[item_id] for item_id in progress.deferred_ids[:retry_limit]]

        logger.info(
            "Current progress: processed=%d remaining=%d total=%d deferred=%d last=%s",
            progress.processed_count,
            progress.remaining_count,
            progress.total_count,
            len(progress.deferred_ids),
            progress.last_processed_id,
        )
        logger.info("Processing batch from index %d to %d", start, end)
        if retry_items:
            logger.info("Then retrying %d deferred items if time allows", len(retry_items))

        tracker = ProgressTracker(
            total_items=progress.total_count,
            stage=self.STAGE,
            already_processed=progress.processed_count,
            clock=self._clock,
        )
        failures = FailureTracker()
        work = [(item, True) for item in frontier] + [(item, False) for item in retry_items]

        for item, is_frontier in work:
            if guard.is_expired():
                logger.info(
                    "Time limit of %.0fs exceeded after %.1fs, stopping batch",
                    self.config.max_run_time,
                    guard.elapsed(),
                )
                result.timed_out = True
                self._transition(SchedulerState.SUSPENDED_ON_TIMEOUT)
                break

            self._process_item(item, is_frontier, progress, result, tracker, failures)
            if tracker.should_log():
                tracker.log_progress()

        if not result.timed_out:
            self._transition(SchedulerState.BATCH_COMPLETE)

        tracker.log_summary()
        failures.save(self.config.failures_file)

        if progress.remaining_count == 0:
            self._transition(SchedulerState.FINALIZING)
            self.last_finalize = self.finalizer.finalize(items)
            result.finalized = True
            self._transition(SchedulerState.DONE)
        elif self.config.incremental_index:
            self.last_finalize = self.finalizer.finalize(items)
            result.finalized = True

        result.state = self.state
        result.more_work_remains = result.timed_out or progress.remaining_count > 0
        logger.info(
            "Batch complete. Processed %d/%d articles",
            progress.processed_count,
            progress.total_count,
        )
        return result

    def _process_item(
        self,
        item: ArticleItem,
        is_frontier: bool,
        progress: ProgressRecord,
        result: BatchResult,
        tracker: ProgressTracker,
        failures: FailureTracker,
    ) -> None:
        self._transition(SchedulerState.PROCESSING_ITEM)
        attempts = 0

        def attempt() -> RenderResult:
            nonlocal attempts
            attempts += 1
            return self.renderer.render_item(item)

        try:
            rendered = run_with_retry(
                attempt,
                max_retries=self.config.max_retries,
                retry_delay=self.config.retry_delay,
                sleep=self._sleep,
                description=f"Render article {item.id}",
            )
        except Exception as exc:
            if is_fatal(exc):
                raise
            logger.error("Error generating page for article %s, skipping: %s", item.id, exc)
            failures.record_failure(item.id, exc, attempts=attempts, deferred=not is_frontier)
            result.failed += 1
            tracker.increment(success=False)
            # Back of the queue, so the next run tries other deferred items first
            progress.defer(item.id)
            self.store.save(progress)
            return

        self._transition(SchedulerState.CHECKPOINTING)
        progress.mark_processed(item.id, frontier=is_frontier)
        self.store.save(progress)
        result.processed += 1
        if rendered.skipped:
            result.skipped += 1
        tracker.increment(success=True, skipped=rendered.skipped)

    def render_single(self, item_id: str, *, force: bool = True) -> RenderResult:
        """Render one article outside the batch/checkpoint machinery.

        Args:
            item_id: Article id to (re)render
            force: Rewrite the page even if its completion marker exists

        Raises:
            KeyError: If the id is not in the work list
        """
        items = self._list_items()
        item = next((candidate for candidate in items if candidate.id == item_id), None)
        if item is None:
            raise KeyError(f"Article {item_id} not found in archive")

        self._ensure_directories()
        return run_with_retry(
            lambda: self.renderer.render_item(item, force=force),
            max_retries=self.config.max_retries,
            retry_delay=self.config.retry_delay,
            sleep=self._sleep,
            description=f"Render article {item.id}",
        )
