"""Archived article metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

PUBLISH_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True, slots=True)
class ArticleItem:
    """One archived article; the unit of work for rendering.

    Items are immutable once fetched. The archive JSON uses camelCase keys,
    so ``from_dict``/``to_dict`` translate ``publish_time`` <-> ``publishTime``.
    """

    id: str
    title: str = ""
    author: Optional[str] = None
    link: str = ""
    cover: Optional[str] = None
    digest: Optional[str] = None
    publish_time: Optional[str] = None
    categories: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArticleItem":
        item_id = data.get("id")
        if item_id in (None, ""):
            raise ValueError("Article record is missing an id")
        return cls(
            id=str(item_id),
            title=data.get("title") or "",
            author=data.get("author") or None,
            link=data.get("link") or "",
            cover=data.get("cover") or None,
            digest=data.get("digest") or None,
            publish_time=data.get("publishTime") or None,
            categories=tuple(data.get("categories") or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "publishTime": self.publish_time,
            "categories": list(self.categories),
            "link": self.link,
            "cover": self.cover,
            "digest": self.digest,
        }

    @property
    def published_at(self) -> Optional[datetime]:
        """Parsed ``publish_time`` or None when missing/unparsable."""
        if not self.publish_time:
            return None
        try:
            return datetime.strptime(self.publish_time, PUBLISH_TIME_FORMAT)
        except ValueError:
            try:
                return datetime.fromisoformat(self.publish_time.replace("Z", "+00:00")).replace(tzinfo=None)
            except ValueError:
                return None

    def sort_key(self) -> Tuple[datetime, str]:
        """Chronological key; undated items sort first, ties broken by id."""
        return (self.published_at or datetime.min, self.id)
