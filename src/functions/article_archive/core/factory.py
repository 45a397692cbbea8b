"""Wiring of scheduler and ingestor instances from ``ArchiveConfig``."""

from __future__ import annotations

from typing import Optional

from src.shared.batch import ProgressStore

from .config import ArchiveConfig, WeChatCredentials
from .db import ArchiveStore, ArchiveWorkSource
from .feed import ArchiveIngestor, WeChatFeedClient
from .pipelines import BatchScheduler, Finalizer
from .render import ArticleRenderer, IndexBuilder


def build_archive_store(config: ArchiveConfig) -> ArchiveStore:
    return ArchiveStore(config.archive_file, config.articles_dir)


def build_scheduler(
    config: ArchiveConfig,
    *,
    renderer: Optional[ArticleRenderer] = None,
) -> BatchScheduler:
    """Create a scheduler reading the archive and rendering into ``output_dir``.

    The caller owns the renderer's HTTP client; close it via
    ``scheduler.renderer.close()`` when done.
    """
    renderer = renderer or ArticleRenderer(config.output_dir, config.site)
    finalizer = Finalizer(IndexBuilder(config.output_dir, config.site), renderer)
    return BatchScheduler(
        config,
        ProgressStore(config.progress_file),
        ArchiveWorkSource(build_archive_store(config)),
        renderer,
        finalizer,
    )


def build_ingestor(
    config: ArchiveConfig,
    credentials: Optional[WeChatCredentials] = None,
) -> ArchiveIngestor:
    """Create an ingestor; credentials default to the WECHAT_* environment.

    Raises:
        ConfigurationError: If credentials are missing from the environment
    """
    client = WeChatFeedClient(credentials or WeChatCredentials.from_env())
    return ArchiveIngestor(
        client,
        build_archive_store(config),
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )
