"""JSON archive of article metadata.

The archive file is the feed-ingestion side's record of every article seen:

    {"lastUpdate": "2025-01-01 08:00:00", "articles": [{...}, ...]}

Entries are unique by ``id`` and kept newest-first for display. The batch
scheduler reads them oldest-first (see ``work_items``) so newly ingested
articles only ever extend the tail of its work list.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..contracts import PUBLISH_TIME_FORMAT, ArticleItem
from ..errors import DiscoveryError

logger = logging.getLogger(__name__)


def _write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")
    with open(temp_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)
    temp_path.replace(path)


class ArchiveStore:
    """Reads and rewrites the archive file and per-article metadata."""

    def __init__(self, archive_file: Path, articles_dir: Path) -> None:
        self.archive_file = Path(archive_file)
        self.articles_dir = Path(articles_dir)

    def initialize(self) -> None:
        """Create the archive file and metadata directory if missing."""
        self.articles_dir.mkdir(parents=True, exist_ok=True)
        if not self.archive_file.exists():
            _write_json_atomic(self.archive_file, {"lastUpdate": None, "articles": []})
            logger.info("Initialized empty archive at %s", self.archive_file)

    def load_raw(self) -> Dict[str, Any]:
        """Return the archive payload.

        Raises:
            DiscoveryError: If the archive is missing or unreadable
        """
        try:
            with open(self.archive_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as exc:
            raise DiscoveryError(f"Archive file not found: {self.archive_file}") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise DiscoveryError(f"Failed to read archive {self.archive_file}: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("articles"), list):
            raise DiscoveryError(f"Archive {self.archive_file} has no 'articles' list")
        return data

    def load(self) -> List[ArticleItem]:
        """Return archived articles in file order (newest first)."""
        data = self.load_raw()
        items: List[ArticleItem] = []
        seen = set()
        for record in data["articles"]:
            try:
                item = ArticleItem.from_dict(record)
            except (ValueError, AttributeError) as exc:
                raise DiscoveryError(f"Invalid archive entry {record!r}: {exc}") from exc
            if item.id in seen:
                logger.warning("Duplicate archive entry for %s ignored", item.id)
                continue
            seen.add(item.id)
            items.append(item)
        return items

    def work_items(self) -> List[ArticleItem]:
        """Return archived articles in stable processing order (oldest first)."""
        return sorted(self.load(), key=lambda item: item.sort_key())

    def existing_ids(self) -> set[str]:
        return {item.id for item in self.load()}

    def upsert(self, articles: Iterable[ArticleItem]) -> Tuple[List[ArticleItem], int]:
        """Add articles not already archived and rewrite the file.

        Args:
            articles: Candidate articles from the feed

        Returns:
            Tuple of (all archived articles newest-first, number newly added)
        """
        current = self.load()
        known = {item.id for item in current}
        added: List[ArticleItem] = []
        for article in articles:
            if article.id in known:
                continue
            known.add(article.id)
            added.append(article)

        if not added:
            return current, 0

        for article in added:
            self.save_article_metadata(article)

        merged = sorted(current + added, key=lambda item: item.sort_key(), reverse=True)
        _write_json_atomic(
            self.archive_file,
            {
                "lastUpdate": datetime.now().strftime(PUBLISH_TIME_FORMAT),
                "articles": [item.to_dict() for item in merged],
            },
        )
        logger.info("Archived %d new articles (%d total)", len(added), len(merged))
        return merged, len(added)

    def metadata_path(self, article_id: str) -> Path:
        return self.articles_dir / article_id / "article.json"

    def save_article_metadata(self, article: ArticleItem, url: Optional[str] = None) -> Path:
        """Write ``data/articles/<id>/article.json`` for one article."""
        path = self.metadata_path(article.id)
        payload = article.to_dict()
        payload["url"] = url or article.link
        _write_json_atomic(path, payload)
        return path


class ArchiveWorkSource:
    """Adapts ``ArchiveStore`` to the scheduler's work-source interface."""

    def __init__(self, store: ArchiveStore) -> None:
        self.store = store

    def list_items(self) -> List[ArticleItem]:
        return self.store.work_items()
