"""Contracts for the paginated publish-list feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .article import PUBLISH_TIME_FORMAT, ArticleItem


class BaseResp(BaseModel):
    """Status envelope attached to every feed response."""

    model_config = ConfigDict(extra="ignore")

    ret: int = 0
    err_msg: str = ""


class AlbumInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = ""


class AppMsg(BaseModel):
    """Single article entry inside a ``publish_info`` payload."""

    model_config = ConfigDict(extra="ignore")

    aid: str
    title: str = ""
    author_name: Optional[str] = None
    link: str = ""
    cover: Optional[str] = None
    digest: Optional[str] = None
    update_time: int = 0
    appmsg_album_infos: List[AlbumInfo] = Field(default_factory=list)

    @field_validator("aid", mode="before")
    @classmethod
    def _coerce_aid(cls, value: Any) -> str:
        if value in (None, ""):
            raise ValueError("aid is required")
        return str(value)

    def to_item(self) -> ArticleItem:
        publish_time = None
        if self.update_time:
            publish_time = datetime.fromtimestamp(self.update_time, tz=timezone.utc).strftime(PUBLISH_TIME_FORMAT)
        return ArticleItem(
            id=self.aid,
            title=self.title,
            author=self.author_name or None,
            link=self.link,
            cover=self.cover or None,
            digest=self.digest or None,
            publish_time=publish_time,
            categories=tuple(album.title for album in self.appmsg_album_infos if album.title),
        )


class PublishInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    appmsgex: List[AppMsg] = Field(default_factory=list)


class PublishEntry(BaseModel):
    """One publish event; ``publish_info`` is itself a JSON-encoded string."""

    model_config = ConfigDict(extra="ignore")

    publish_info: str = "{}"


class PublishPage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_count: int = Field(0, ge=0)
    publish_list: List[PublishEntry] = Field(default_factory=list)


@dataclass
class FeedPage:
    """One page of feed results, as returned by ``fetch_page``."""

    total_count: int
    items: List[ArticleItem] = field(default_factory=list)
