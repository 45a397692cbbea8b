"""Publishes the index and sitemap once articles are rendered."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol

from ..contracts import ArticleItem
from ..render import IndexBuilder

logger = logging.getLogger(__name__)


class CompletionCheck(Protocol):
    def is_complete(self, item: ArticleItem) -> bool:
        ...


@dataclass
class FinalizeResult:
    article_count: int
    excluded_count: int
    index_path: Path
    sitemap_path: Path


class Finalizer:
    """Regenerates the index/sitemap from the articles known to be complete.

    Safe to call any number of times; it only overwrites the published
    index files and never touches the progress checkpoint.
    """

    def __init__(self, index_builder: IndexBuilder, completion: CompletionCheck) -> None:
        self.index_builder = index_builder
        self.completion = completion

    def finalize(self, items: Iterable[ArticleItem]) -> FinalizeResult:
        candidates = list(items)
        completed = [item for item in candidates if self.completion.is_complete(item)]
        excluded = len(candidates) - len(completed)
        if excluded:
            logger.info("Publishing %d articles (%d not rendered yet)", len(completed), excluded)

        artifacts = self.index_builder.build_index(completed)
        return FinalizeResult(
            article_count=artifacts.article_count,
            excluded_count=excluded,
            index_path=artifacts.index_path,
            sitemap_path=artifacts.sitemap_path,
        )
