"""Feed ingestion into the article archive."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, List

from src.shared.batch import CollaboratorError, run_with_retry

from ..contracts import FeedPage
from ..db import ArchiveStore
from .client import WeChatFeedClient

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of one ingestion run."""

    total_count: int = 0
    new_articles: int = 0
    pages_fetched: int = 0
    failed_pages: List[int] = field(default_factory=list)
    stopped_at_known: bool = False


class ArchiveIngestor:
    """Pages through the feed and upserts articles into the archive.

    Page fetches go through the retry executor; an invalid session is not
    retried and propagates to the caller, which must stop the process.
    """

    def __init__(
        self,
        client: WeChatFeedClient,
        archive: ArchiveStore,
        *,
        page_size: int = 20,
        page_delay: float = 1.0,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.archive = archive
        self.page_size = page_size
        self.page_delay = page_delay
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep

    def _fetch(self, offset: int) -> FeedPage:
        return run_with_retry(
            lambda: self.client.fetch_page(offset, self.page_size),
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            sleep=self._sleep,
            description=f"fetch page at offset {offset}",
        )

    def fetch_all(self) -> IngestResult:
        """Backfill the archive with every page the feed reports.

        A page that still fails after retries is logged and skipped; the
        next run picks its articles up because upserts are idempotent.
        """
        self.archive.initialize()
        logger.info("Starting full article fetch...")

        first = self._fetch(0)
        result = IngestResult(total_count=first.total_count, pages_fetched=1)
        _, added = self.archive.upsert(first.items)
        result.new_articles += added

        total_pages = math.ceil(first.total_count / self.page_size) if first.total_count else 1
        logger.info("Found %d total publish entries across %d pages", first.total_count, total_pages)

        for page in range(1, total_pages):
            offset = page * self.page_size
            self._sleep(self.page_delay)
            logger.info("Fetching page %d/%d (offset %d)", page + 1, total_pages, offset)
            try:
                data = self._fetch(offset)
            except CollaboratorError as exc:
                if exc.fatal:
                    raise
                logger.error("Skipping page %d after retries: %s", page + 1, exc)
                result.failed_pages.append(page)
                continue
            result.pages_fetched += 1
            _, added = self.archive.upsert(data.items)
            result.new_articles += added

        logger.info("Full fetch completed: %d new articles", result.new_articles)
        return result

    def fetch_new(self) -> IngestResult:
        """Fetch only articles newer than the newest archived one.

        The feed is time-ordered, so paging stops at the first known id.
        """
        self.archive.initialize()
        existing = self.archive.existing_ids()
        logger.info("Fetching new articles (%d already archived)...", len(existing))

        result = IngestResult()
        offset = 0
        total_pages = 1
        page = 0
        while page < total_pages:
            if page > 0:
                self._sleep(self.page_delay)
            try:
                data = self._fetch(offset)
            except CollaboratorError as exc:
                if exc.fatal or page == 0:
                    raise
                logger.error("Stopping incremental fetch at page %d: %s", page + 1, exc)
                result.failed_pages.append(page)
                break

            if page == 0:
                result.total_count = data.total_count
                total_pages = max(math.ceil(data.total_count / self.page_size), 1)
            result.pages_fetched += 1

            fresh = []
            for item in data.items:
                if item.id in existing:
                    result.stopped_at_known = True
                    break
                fresh.append(item)

            if fresh:
                _, added = self.archive.upsert(fresh)
                result.new_articles += added
            if result.stopped_at_known or not data.items:
                if result.stopped_at_known:
                    logger.info("Found existing article, stopping fetch since articles are time-ordered")
                break

            page += 1
            offset = page * self.page_size

        logger.info("Incremental fetch completed: %d new articles", result.new_articles)
        return result
